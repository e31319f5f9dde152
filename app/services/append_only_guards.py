from sqlalchemy import inspect, text

APPEND_ONLY_TABLES = ("project_situation_snapshots", "audit_logs")


def table_exists(engine, table_name: str) -> bool:
    if engine is None:
        return False
    return inspect(engine).has_table(table_name)


def _postgres_ddl(table_name: str) -> str:
    return f"""
    CREATE OR REPLACE FUNCTION {table_name}_block_mutation()
    RETURNS trigger AS $$
    BEGIN
        RAISE EXCEPTION '{table_name} is append-only';
    END;
    $$ LANGUAGE plpgsql;

    DROP TRIGGER IF EXISTS trg_{table_name}_block_update ON {table_name};
    CREATE TRIGGER trg_{table_name}_block_update
    BEFORE UPDATE ON {table_name}
    FOR EACH ROW
    EXECUTE FUNCTION {table_name}_block_mutation();

    DROP TRIGGER IF EXISTS trg_{table_name}_block_delete ON {table_name};
    CREATE TRIGGER trg_{table_name}_block_delete
    BEFORE DELETE ON {table_name}
    FOR EACH ROW
    EXECUTE FUNCTION {table_name}_block_mutation();
    """


def _sqlite_statements(table_name: str) -> list[str]:
    # sqlite executes one statement per call
    return [
        f"""
        CREATE TRIGGER IF NOT EXISTS trg_{table_name}_block_{op.lower()}
        BEFORE {op} ON {table_name}
        BEGIN
            SELECT RAISE(ABORT, '{table_name} is append-only');
        END
        """
        for op in ("UPDATE", "DELETE")
    ]


def install_append_only_guards(engine) -> None:
    """
    Install triggers rejecting UPDATE/DELETE on snapshot and audit tables.
    Postgres and SQLite; other dialects are left alone.
    Safe to run multiple times (idempotent).
    """
    if engine is None:
        return

    dialect_name = getattr(getattr(engine, "dialect", None), "name", "")
    if dialect_name not in ("postgresql", "sqlite"):
        return

    with engine.begin() as conn:
        for table_name in APPEND_ONLY_TABLES:
            if not table_exists(engine, table_name):
                continue
            if dialect_name == "postgresql":
                conn.execute(text(_postgres_ddl(table_name)))
            else:
                for statement in _sqlite_statements(table_name):
                    conn.execute(text(statement))
