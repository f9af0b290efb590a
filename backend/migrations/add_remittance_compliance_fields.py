"""
Migration: Add remittance compliance columns and the reminder claim table.

Existing lawyers start as 'CURRENT' and available for matching. Existing
transactions get no due date; the engine falls back to deal_closed_at plus
the grace period.
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/remittance_compliance"
)

LAWYER_COLUMNS = {
    "remittance_status": "VARCHAR(20) NOT NULL DEFAULT 'CURRENT'",
    "suspended_for_non_payment": "BOOLEAN NOT NULL DEFAULT FALSE",
    "suspension_date": "TIMESTAMP",
    "available_for_matching": "BOOLEAN NOT NULL DEFAULT TRUE",
    "outstanding_fees_total": "NUMERIC(12, 2) NOT NULL DEFAULT 0",
    "outstanding_fees_updated_at": "TIMESTAMP",
}

TRANSACTION_COLUMNS = {
    "remittance_due_date": "DATE",
    "remittance_reminder_sent_at": "TIMESTAMP",
}


def _column_exists(conn, table: str, column: str) -> bool:
    result = conn.execute(text("""
        SELECT column_name
        FROM information_schema.columns
        WHERE table_name = :table AND column_name = :column
    """), {"table": table, "column": column})
    return result.fetchone() is not None


def _add_columns(conn, table: str, columns: dict):
    for column, ddl in columns.items():
        if _column_exists(conn, table, column):
            print(f"{table}.{column} already exists")
            continue
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
        print(f"Added {column} column to {table} table")


def run_migration():
    """Add compliance columns and create remittance_reminders if missing."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        _add_columns(conn, "lawyers", LAWYER_COLUMNS)
        _add_columns(conn, "transactions", TRANSACTION_COLUMNS)

        conn.execute(text("""
            CREATE TABLE IF NOT EXISTS remittance_reminders (
                id VARCHAR(36) PRIMARY KEY,
                transaction_id VARCHAR(36) NOT NULL,
                lawyer_id VARCHAR(36) NOT NULL,
                days_overdue INTEGER NOT NULL,
                status VARCHAR(20) NOT NULL DEFAULT 'claimed',
                recipient VARCHAR(255),
                claimed_at TIMESTAMP NOT NULL,
                sent_at TIMESTAMP,
                CONSTRAINT uq_remittance_reminder_milestone UNIQUE (transaction_id, days_overdue)
            )
        """))
        print("Ensured remittance_reminders table exists")

        # Lawyers already suspended by hand are not matchable
        conn.execute(text("""
            UPDATE lawyers
            SET available_for_matching = FALSE
            WHERE remittance_status = 'SUSPENDED'
        """))
        print("Cleared available_for_matching on suspended lawyers")

        conn.commit()

if __name__ == "__main__":
    run_migration()
