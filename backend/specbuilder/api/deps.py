"""FastAPI dependency injection: bearer auth and repository handles."""
import os
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from specbuilder.db import get_db
from specbuilder.services.llm_client import LLMClient
from specbuilder.services.repository import PrivilegedRepository, ScopedRepository
from specbuilder.workers.tasks import dispatch_analysis_job

SECRET_KEY = os.getenv("JWT_SECRET_KEY", "changethis_use_a_real_secret_in_production_64chars")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

security = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """User id from the bearer token's ``sub`` claim. Tokens are issued elsewhere."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return str(user_id)


async def get_scoped_repo(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ScopedRepository:
    return ScopedRepository(db, user_id)


async def get_privileged_repo(db: AsyncSession = Depends(get_db)) -> PrivilegedRepository:
    return PrivilegedRepository(db)


def get_llm_client() -> LLMClient:
    return LLMClient()


def get_dispatcher():
    return dispatch_analysis_job
