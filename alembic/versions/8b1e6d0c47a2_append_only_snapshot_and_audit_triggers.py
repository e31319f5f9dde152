"""append_only_snapshot_and_audit_triggers

Revision ID: 8b1e6d0c47a2
Revises: 3f9c1a7b2d40
Create Date: 2026-10-19 09:40:07.661392

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8b1e6d0c47a2'
down_revision: Union[str, Sequence[str], None] = '3f9c1a7b2d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = ("project_situation_snapshots", "audit_logs")


def upgrade() -> None:
    """Upgrade schema."""
    for table in TABLES:
        op.execute(
            f"""
            CREATE OR REPLACE FUNCTION {table}_block_mutation()
            RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION '{table} is append-only';
            END;
            $$ LANGUAGE plpgsql;

            DROP TRIGGER IF EXISTS trg_{table}_block_update ON {table};
            CREATE TRIGGER trg_{table}_block_update
            BEFORE UPDATE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION {table}_block_mutation();

            DROP TRIGGER IF EXISTS trg_{table}_block_delete ON {table};
            CREATE TRIGGER trg_{table}_block_delete
            BEFORE DELETE ON {table}
            FOR EACH ROW
            EXECUTE FUNCTION {table}_block_mutation();
            """
        )


def downgrade() -> None:
    """Downgrade schema."""
    for table in TABLES:
        op.execute(
            f"""
            DROP TRIGGER IF EXISTS trg_{table}_block_update ON {table};
            DROP TRIGGER IF EXISTS trg_{table}_block_delete ON {table};
            DROP FUNCTION IF EXISTS {table}_block_mutation();
            """
        )
