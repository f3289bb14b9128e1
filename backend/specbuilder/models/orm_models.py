"""ORM Models for the spec builder: SQLAlchemy 2.0"""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime,
    ForeignKey, Index, text,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from specbuilder.db import Base


def gen_uuid():
    return str(uuid.uuid4())


# ── ORGANISATIONS / PROJECTS ──────────────────────────────────────────────────
class Organisation(Base):
    __tablename__ = "organisation"
    organisation_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class UserOrganisationMapping(Base):
    __tablename__ = "user_organisation_mapping"
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True)
    organisation_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organisation.organisation_id", ondelete="CASCADE"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Project(Base):
    __tablename__ = "project"
    project_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    user_id: Mapped[str] = mapped_column(UUID(as_uuid=False), nullable=False, index=True)
    organisation_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organisation.organisation_id")
    )
    project_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    clauses: Mapped[list["ProjectClause"]] = relationship("ProjectClause", back_populates="project")


# ── CLAUSE LIBRARY ────────────────────────────────────────────────────────────
class MasterClause(Base):
    __tablename__ = "master_clause"
    master_clause_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    caws_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    short_title: Mapped[str] = mapped_column(String(255), nullable=False)
    body_template: Mapped[Optional[str]] = mapped_column(Text)
    field_definitions: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class ProjectClause(Base):
    __tablename__ = "project_clause"
    project_clause_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("project.project_id", ondelete="CASCADE"), nullable=False, index=True
    )
    master_clause_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("master_clause.master_clause_id")
    )
    caws_number: Mapped[Optional[str]] = mapped_column(String(20))
    freeform_caws_number: Mapped[Optional[str]] = mapped_column(String(20))
    freeform_title: Mapped[Optional[str]] = mapped_column(String(255))
    freeform_body: Mapped[Optional[str]] = mapped_column(Text)
    field_values: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    project: Mapped["Project"] = relationship("Project", back_populates="clauses")
    master_clause: Mapped[Optional["MasterClause"]] = relationship("MasterClause", lazy="joined")


class ProductLibrary(Base):
    __tablename__ = "product_library"
    product_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    master_clause_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("master_clause.master_clause_id")
    )
    esg_material_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("esg_material_library.esg_material_id", ondelete="SET NULL")
    )
    manufacturer: Mapped[str] = mapped_column(String(255), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_data: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── ESG ───────────────────────────────────────────────────────────────────────
class EsgMaterialLibrary(Base):
    __tablename__ = "esg_material_library"
    esg_material_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    organisation_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("organisation.organisation_id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    data_source: Mapped[str] = mapped_column(String(100), default="ICE Database")
    external_id: Mapped[Optional[str]] = mapped_column(String(100), unique=True)
    embodied_carbon: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    carbon_unit: Mapped[str] = mapped_column(String(50), default="kgCO2e/tonne")
    cost_impact_text: Mapped[Optional[str]] = mapped_column(Text)
    modifications_text: Mapped[Optional[str]] = mapped_column(Text)
    alternative_to_ids: Mapped[list] = mapped_column(JSONB, default=list)
    nlp_tags: Mapped[dict] = mapped_column(JSONB, default=dict)  # {"synonyms": [...], "tags": [...]}
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ProjectAnalysisJob(Base):
    __tablename__ = "project_analysis_job"
    __table_args__ = (
        # At most one queued/running job per project
        Index(
            "uq_analysis_job_in_flight",
            "project_id",
            unique=True,
            postgresql_where=text("status IN ('queued', 'running')"),
        ),
    )
    job_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("project.project_id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="queued")  # queued | running | complete | failed
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class ProjectEsgSuggestion(Base):
    __tablename__ = "project_esg_suggestion"
    suggestion_id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("project.project_id", ondelete="CASCADE"), nullable=False, index=True
    )
    source_clause_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("project_clause.project_clause_id", ondelete="CASCADE")
    )  # NULL = project-wide report
    suggestion_title: Mapped[str] = mapped_column(String(255), nullable=False)
    suggestion_narrative: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="new")  # new | seen | dismissed
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
