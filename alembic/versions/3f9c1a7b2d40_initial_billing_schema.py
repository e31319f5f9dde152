"""initial billing schema

Revision ID: 3f9c1a7b2d40
Revises:
Create Date: 2026-10-19 09:12:41.208114

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9c1a7b2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column("id", sa.String(), primary_key=True, nullable=False)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, server_default=None if nullable else sa.text("now()"))


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "clients",
        _uuid_pk(),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("siren", sa.String(9), nullable=True),
        sa.Column("siret", sa.String(14), nullable=True),
        sa.Column("tva_intra", sa.String(), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "contacts",
        _uuid_pk(),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _ts("created_at"),
    )
    op.create_index("ix_contacts_client_id", "contacts", ["client_id"], unique=False)

    op.create_table(
        "projects",
        _uuid_pk(),
        sa.Column("project_number", sa.String(), nullable=False, unique=True),
        sa.Column("designation", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="PREVU"),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("contact_id", sa.String(), sa.ForeignKey("contacts.id"), nullable=True),
        sa.Column("project_manager", sa.String(), nullable=True),
        sa.Column("project_manager_email", sa.String(), nullable=True),
        sa.Column("order_number", sa.String(), nullable=True),
        sa.Column("order_date", sa.Date(), nullable=True),
        sa.Column("order_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("quote_number", sa.String(), nullable=True),
        sa.Column("quote_date", sa.Date(), nullable=True),
        sa.Column("at_days_sold_bo", sa.Numeric(10, 3), nullable=True),
        sa.Column("at_days_sold_site", sa.Numeric(10, 3), nullable=True),
        sa.Column("at_daily_rate_bo", sa.Numeric(12, 2), nullable=True),
        sa.Column("at_daily_rate_site", sa.Numeric(12, 2), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("type IN ('AT', 'FORFAIT')", name="ck_projects_type"),
        sa.CheckConstraint("status IN ('PREVU', 'EN_COURS', 'CLOS', 'ARCHIVE')", name="ck_projects_status"),
    )
    op.create_index("ix_projects_type", "projects", ["type"], unique=False)
    op.create_index("ix_projects_client_id", "projects", ["client_id"], unique=False)
    op.create_index("ix_projects_project_manager_email", "projects", ["project_manager_email"], unique=False)

    op.create_table(
        "deliverables",
        _uuid_pk(),
        sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("submission_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="NON_REMIS"),
        _ts("created_at"),
        sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_deliverables_percentage_range"),
        sa.CheckConstraint("status IN ('NON_REMIS', 'REMIS', 'VALIDE')", name="ck_deliverables_status"),
    )
    op.create_index("ix_deliverables_project_id", "deliverables", ["project_id"], unique=False)

    op.create_table(
        "time_entries",
        _uuid_pk(),
        sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("day", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("hour_slot", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("hours", sa.Numeric(4, 2), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("project_id", "year", "month", "day", "type", "hour_slot", name="uq_time_entries_slot"),
        sa.CheckConstraint("hours >= 0 AND hours <= 8", name="ck_time_entries_hours_range"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_time_entries_month_range"),
        sa.CheckConstraint("day >= 1 AND day <= 31", name="ck_time_entries_day_range"),
        sa.CheckConstraint("hour_slot >= 0", name="ck_time_entries_hour_slot_nonnegative"),
        sa.CheckConstraint("type IN ('BO', 'SITE')", name="ck_time_entries_type"),
    )
    op.create_index("ix_time_entries_project_period", "time_entries", ["project_id", "year", "month"], unique=False)

    op.create_table(
        "period_locks",
        _uuid_pk(),
        sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_by", sa.String(), nullable=True),
        _ts("locked_at", nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.UniqueConstraint("project_id", "year", "month", name="uq_period_locks_period"),
        sa.CheckConstraint("month >= 1 AND month <= 12", name="ck_period_locks_month_range"),
    )
    op.create_index("ix_period_locks_project_id", "period_locks", ["project_id"], unique=False)

    op.create_table(
        "project_situation_snapshots",
        _uuid_pk(),
        sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("month", sa.Integer(), nullable=True),
        _ts("computed_at"),
        sa.Column("computed_by", sa.String(), nullable=False),
        sa.Column("source_ref", sa.String(), nullable=True),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "supersedes_snapshot_id",
            sa.String(),
            sa.ForeignKey("project_situation_snapshots.id"),
            nullable=True,
        ),
        sa.CheckConstraint(
            "type IN ('MONTH_END', 'BORDEREAU_GENERATED', 'BORDEREAU_SIGNED', 'RECTIFICATIF', 'MANUAL')",
            name="ck_snapshots_type",
        ),
    )
    op.create_index(
        "ix_project_situation_snapshots_project_id", "project_situation_snapshots", ["project_id"], unique=False
    )
    op.create_index(
        "ix_project_situation_snapshots_supersedes_snapshot_id",
        "project_situation_snapshots",
        ["supersedes_snapshot_id"],
        unique=False,
    )
    op.create_index(
        "ix_snapshots_project_type_period",
        "project_situation_snapshots",
        ["project_id", "type", "year", "month"],
        unique=False,
    )

    op.create_table(
        "file_objects",
        _uuid_pk(),
        sa.Column("storage_key", sa.String(), nullable=False, unique=True),
        sa.Column("file_name", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("checksum", sa.String(64), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "bordereaux",
        _uuid_pk(),
        sa.Column("project_id", sa.String(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("base_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="GENERATED"),
        sa.Column("period_year", sa.Integer(), nullable=True),
        sa.Column("period_month", sa.Integer(), nullable=True),
        sa.Column("snapshot_id", sa.String(), sa.ForeignKey("project_situation_snapshots.id"), nullable=False),
        sa.Column("is_live", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        _ts("signed_at", nullable=True),
        sa.Column("signed_file_id", sa.String(), sa.ForeignKey("file_objects.id"), nullable=True),
        sa.Column("audit_trail_file_id", sa.String(), sa.ForeignKey("file_objects.id"), nullable=True),
        sa.CheckConstraint("type IN ('BA', 'BL', 'RECTIFICATIF')", name="ck_bordereaux_type"),
        sa.CheckConstraint("base_type IN ('BA', 'BL')", name="ck_bordereaux_base_type"),
        sa.CheckConstraint("status IN ('GENERATED', 'SIGNED')", name="ck_bordereaux_status"),
        sa.CheckConstraint(
            "(period_year IS NULL AND period_month IS NULL) "
            "OR (period_year IS NOT NULL AND period_month BETWEEN 1 AND 12)",
            name="ck_bordereaux_period",
        ),
    )
    op.create_index("ix_bordereaux_project_id", "bordereaux", ["project_id"], unique=False)
    op.execute(
        """
        CREATE UNIQUE INDEX uq_bordereaux_live_period
        ON bordereaux (project_id, base_type, coalesce(period_year, 0), coalesce(period_month, 0))
        WHERE is_live IS true
        """
    )

    op.create_table(
        "bordereau_versions",
        _uuid_pk(),
        sa.Column("bordereau_id", sa.String(), sa.ForeignKey("bordereaux.id", ondelete="CASCADE"), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("file_id", sa.String(), sa.ForeignKey("file_objects.id"), nullable=False),
        sa.Column("snapshot_id", sa.String(), sa.ForeignKey("project_situation_snapshots.id"), nullable=False),
        sa.Column("generated_by", sa.String(), nullable=False),
        _ts("generated_at"),
        sa.UniqueConstraint("bordereau_id", "version_number", name="uq_bordereau_versions_number"),
        sa.CheckConstraint("version_number >= 1", name="ck_bordereau_versions_number_positive"),
    )
    op.create_index("ix_bordereau_versions_bordereau_id", "bordereau_versions", ["bordereau_id"], unique=False)

    op.create_table(
        "esign_agreements",
        _uuid_pk(),
        sa.Column("bordereau_id", sa.String(), sa.ForeignKey("bordereaux.id", ondelete="CASCADE"), nullable=False),
        sa.Column("provider_id", sa.String(), nullable=False, unique=True),
        sa.Column("status", sa.String(), nullable=False, server_default="SENT"),
        sa.Column("signer_email", sa.String(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "status IN ('SENT', 'SIGNED', 'CANCELLED', 'DECLINED', 'EXPIRED')",
            name="ck_esign_agreements_status",
        ),
    )
    op.create_index("ix_esign_agreements_bordereau_id", "esign_agreements", ["bordereau_id"], unique=False)

    op.create_table(
        "audit_logs",
        _uuid_pk(),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("diff", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("actor_name", sa.String(), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("audit_logs")
    op.drop_table("esign_agreements")
    op.drop_table("bordereau_versions")
    op.execute("DROP INDEX IF EXISTS uq_bordereaux_live_period")
    op.drop_table("bordereaux")
    op.drop_table("file_objects")
    op.drop_table("project_situation_snapshots")
    op.drop_table("period_locks")
    op.drop_table("time_entries")
    op.drop_table("deliverables")
    op.drop_table("projects")
    op.drop_table("contacts")
    op.drop_table("clients")
