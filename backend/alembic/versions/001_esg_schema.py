"""esg_schema

Revision ID: 001_esg_schema
Revises:
Create Date: 2026-10-19

Creates the spec builder tables used by the ESG analysis pipeline:
- organisation, user_organisation_mapping, project
- master_clause, project_clause, product_library
- esg_material_library (reference carbon library)
- project_analysis_job (+ partial unique index uq_analysis_job_in_flight)
- project_esg_suggestion

All DDL checks for existing tables/indexes first so the migration is
idempotent and safe to run after Base.metadata.create_all().
"""
import logging
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = '001_esg_schema'
down_revision = None
branch_labels = None
depends_on = None

logger = logging.getLogger("alembic.001")


def _table_exists(conn, table_name: str) -> bool:
    result = conn.execute(
        text(
            "SELECT EXISTS("
            "  SELECT 1 FROM information_schema.tables"
            "  WHERE table_name = :tname"
            ")"
        ),
        {"tname": table_name},
    )
    return bool(result.scalar())


def _index_exists(conn, index_name: str) -> bool:
    result = conn.execute(
        text("SELECT EXISTS(SELECT 1 FROM pg_indexes WHERE indexname = :iname)"),
        {"iname": index_name},
    )
    return bool(result.scalar())


def _uuid_pk(name: str) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=False), primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def _updated_at() -> sa.Column:
    return sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    conn = op.get_bind()

    # ── organisation ──────────────────────────────────────────────────────────
    if not _table_exists(conn, 'organisation'):
        op.create_table(
            'organisation',
            _uuid_pk('organisation_id'),
            sa.Column('name', sa.String(255), nullable=False),
            _created_at(),
        )
        logger.info("Created table: organisation")
    else:
        logger.info("Table organisation already exists, skipping create")

    if not _table_exists(conn, 'user_organisation_mapping'):
        op.create_table(
            'user_organisation_mapping',
            sa.Column('user_id', UUID(as_uuid=False), primary_key=True),
            sa.Column('organisation_id', UUID(as_uuid=False),
                      sa.ForeignKey('organisation.organisation_id', ondelete='CASCADE'), primary_key=True),
            _created_at(),
        )
        logger.info("Created table: user_organisation_mapping")

    # ── project ───────────────────────────────────────────────────────────────
    if not _table_exists(conn, 'project'):
        op.create_table(
            'project',
            _uuid_pk('project_id'),
            sa.Column('user_id', UUID(as_uuid=False), nullable=False, index=True),
            sa.Column('organisation_id', UUID(as_uuid=False),
                      sa.ForeignKey('organisation.organisation_id'), nullable=True),
            sa.Column('project_name', sa.String(255), nullable=True),
            _created_at(),
        )
        logger.info("Created table: project")

    # ── clause library ────────────────────────────────────────────────────────
    if not _table_exists(conn, 'master_clause'):
        op.create_table(
            'master_clause',
            _uuid_pk('master_clause_id'),
            sa.Column('caws_number', sa.String(20), nullable=False, index=True),
            sa.Column('short_title', sa.String(255), nullable=False),
            sa.Column('body_template', sa.Text, nullable=True),
            sa.Column('field_definitions', JSONB, nullable=True, server_default=sa.text("'[]'::jsonb")),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        )
        logger.info("Created table: master_clause")

    if not _table_exists(conn, 'project_clause'):
        op.create_table(
            'project_clause',
            _uuid_pk('project_clause_id'),
            sa.Column('project_id', UUID(as_uuid=False),
                      sa.ForeignKey('project.project_id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('master_clause_id', UUID(as_uuid=False),
                      sa.ForeignKey('master_clause.master_clause_id'), nullable=True),
            sa.Column('caws_number', sa.String(20), nullable=True),
            sa.Column('freeform_caws_number', sa.String(20), nullable=True),
            sa.Column('freeform_title', sa.String(255), nullable=True),
            sa.Column('freeform_body', sa.Text, nullable=True),
            sa.Column('field_values', JSONB, nullable=True, server_default=sa.text("'{}'::jsonb")),
            sa.Column('sort_order', sa.Integer, nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        )
        logger.info("Created table: project_clause")

    # ── esg_material_library ──────────────────────────────────────────────────
    if not _table_exists(conn, 'esg_material_library'):
        op.create_table(
            'esg_material_library',
            _uuid_pk('esg_material_id'),
            sa.Column('organisation_id', UUID(as_uuid=False),
                      sa.ForeignKey('organisation.organisation_id', ondelete='CASCADE'), nullable=True),
            sa.Column('name', sa.String(500), nullable=False),
            sa.Column('data_source', sa.String(100), nullable=False, server_default='ICE Database'),
            sa.Column('external_id', sa.String(100), nullable=True, unique=True),
            sa.Column('embodied_carbon', sa.Numeric(12, 4), nullable=False),
            sa.Column('carbon_unit', sa.String(50), nullable=False, server_default='kgCO2e/tonne'),
            sa.Column('cost_impact_text', sa.Text, nullable=True),
            sa.Column('modifications_text', sa.Text, nullable=True),
            sa.Column('alternative_to_ids', JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
            sa.Column('nlp_tags', JSONB, nullable=False, server_default=sa.text("'{}'::jsonb")),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true(), index=True),
            _created_at(),
            _updated_at(),
        )
        logger.info("Created table: esg_material_library")

    if not _table_exists(conn, 'product_library'):
        op.create_table(
            'product_library',
            _uuid_pk('product_id'),
            sa.Column('master_clause_id', UUID(as_uuid=False),
                      sa.ForeignKey('master_clause.master_clause_id'), nullable=True),
            sa.Column('esg_material_id', UUID(as_uuid=False),
                      sa.ForeignKey('esg_material_library.esg_material_id', ondelete='SET NULL'), nullable=True),
            sa.Column('manufacturer', sa.String(255), nullable=False),
            sa.Column('product_name', sa.String(255), nullable=False),
            sa.Column('product_data', JSONB, nullable=True, server_default=sa.text("'{}'::jsonb")),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        )
        logger.info("Created table: product_library")

    # ── project_analysis_job ──────────────────────────────────────────────────
    if not _table_exists(conn, 'project_analysis_job'):
        op.create_table(
            'project_analysis_job',
            _uuid_pk('job_id'),
            sa.Column('project_id', UUID(as_uuid=False),
                      sa.ForeignKey('project.project_id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
            sa.Column('error_message', sa.Text, nullable=True),
            _created_at(),
            sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        )
        logger.info("Created table: project_analysis_job")

    if not _index_exists(conn, 'uq_analysis_job_in_flight'):
        op.create_index(
            'uq_analysis_job_in_flight',
            'project_analysis_job',
            ['project_id'],
            unique=True,
            postgresql_where=sa.text("status IN ('queued', 'running')"),
        )
        logger.info("Created index: uq_analysis_job_in_flight")

    # ── project_esg_suggestion ────────────────────────────────────────────────
    if not _table_exists(conn, 'project_esg_suggestion'):
        op.create_table(
            'project_esg_suggestion',
            _uuid_pk('suggestion_id'),
            sa.Column('project_id', UUID(as_uuid=False),
                      sa.ForeignKey('project.project_id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('source_clause_id', UUID(as_uuid=False),
                      sa.ForeignKey('project_clause.project_clause_id', ondelete='CASCADE'), nullable=True),
            sa.Column('suggestion_title', sa.String(255), nullable=False),
            sa.Column('suggestion_narrative', sa.Text, nullable=False),
            sa.Column('status', sa.String(20), nullable=False, server_default='new'),
            _created_at(),
            _updated_at(),
        )
        logger.info("Created table: project_esg_suggestion")


def downgrade() -> None:
    conn = op.get_bind()

    if _index_exists(conn, 'uq_analysis_job_in_flight'):
        op.drop_index('uq_analysis_job_in_flight', table_name='project_analysis_job')

    for table in [
        'project_esg_suggestion',
        'project_analysis_job',
        'product_library',
        'esg_material_library',
        'project_clause',
        'master_clause',
        'project',
        'user_organisation_mapping',
        'organisation',
    ]:
        if _table_exists(conn, table):
            op.drop_table(table)
