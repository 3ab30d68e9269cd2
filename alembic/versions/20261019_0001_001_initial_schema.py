"""Initial schema - users, one-time passwords, tasks and reminder delivery.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Tables:
- users and one_time_passwords for Google sign-in with emailed OTPs
- tasks with reminder configuration and tracking columns
- reminder_history, one row per delivery attempt
- scheduled_reminders, the armed deliveries polled by the reminder worker

Enum columns hold member names, matching how SQLAlchemy persists Enum fields.
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TYPE remindertype AS ENUM (
            'CUSTOM', 'WEEKLY', 'FORTNIGHTLY', 'MONTHLY', 'BIMONTHLY', 'QUARTERLY',
            'HALF_YEARLY', 'ANNUALLY', 'BI_ANNUALLY', 'TRI_ANNUALLY'
        )
    """)
    op.execute("CREATE TYPE reminderfrequency AS ENUM ('ONCE', 'TWICE', 'THRICE')")
    op.execute("CREATE TYPE reminderstatus AS ENUM ('PENDING', 'PROCESSING', 'SENT', 'CANCELLED', 'FAILED')")
    op.execute("CREATE TYPE historystatus AS ENUM ('SENT', 'FAILED')")

    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id UUID PRIMARY KEY,
            email VARCHAR(255) NOT NULL UNIQUE,
            name VARCHAR(255),
            google_id VARCHAR(255) UNIQUE,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_users_email ON users(email);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS one_time_passwords (
            id UUID PRIMARY KEY,
            email VARCHAR(255) NOT NULL,
            code_hash VARCHAR(255) NOT NULL,
            expires_at TIMESTAMP NOT NULL,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_one_time_passwords_email ON one_time_passwords(email);
        CREATE INDEX IF NOT EXISTS ix_one_time_passwords_expires_at ON one_time_passwords(expires_at);
    """)

    # owner is a free-form user id, intentionally without a foreign key
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id UUID PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            due_date DATE NOT NULL,
            due_time VARCHAR(5) NOT NULL,
            owner VARCHAR(255) NOT NULL,
            completed BOOLEAN NOT NULL DEFAULT FALSE,
            reminder_type remindertype NOT NULL DEFAULT 'CUSTOM',
            reminder_frequency reminderfrequency,
            reminder_total INTEGER,
            reminder_sent INTEGER,
            reminder_last_sent_at TIMESTAMP,
            reminder_next_due_at TIMESTAMP,
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_tasks_owner ON tasks(owner);
        CREATE INDEX IF NOT EXISTS ix_tasks_completed ON tasks(completed);
        CREATE INDEX IF NOT EXISTS ix_tasks_reminder_next_due_at ON tasks(reminder_next_due_at);
        CREATE INDEX IF NOT EXISTS ix_tasks_created_at ON tasks(created_at);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS reminder_history (
            id UUID PRIMARY KEY,
            task_id UUID NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            sent_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            reminder_number INTEGER NOT NULL,
            status historystatus NOT NULL DEFAULT 'SENT'
        );
        CREATE INDEX IF NOT EXISTS ix_reminder_history_task_id ON reminder_history(task_id);
    """)

    op.execute("""
        CREATE TABLE IF NOT EXISTS scheduled_reminders (
            id UUID PRIMARY KEY,
            task_id UUID NOT NULL,
            recipient VARCHAR(255) NOT NULL,
            remind_at TIMESTAMP NOT NULL,
            reminder_number INTEGER NOT NULL DEFAULT 1,
            status reminderstatus NOT NULL DEFAULT 'PENDING',
            error_message VARCHAR(500),
            created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
            sent_at TIMESTAMP
        );
        CREATE INDEX IF NOT EXISTS ix_scheduled_reminders_task_id ON scheduled_reminders(task_id);
        CREATE INDEX IF NOT EXISTS ix_scheduled_reminders_remind_at ON scheduled_reminders(remind_at);
        CREATE INDEX IF NOT EXISTS ix_scheduled_reminders_status ON scheduled_reminders(status);
    """)


def downgrade() -> None:
    # Drop tables in reverse order
    op.execute("DROP TABLE IF EXISTS scheduled_reminders CASCADE")
    op.execute("DROP TABLE IF EXISTS reminder_history CASCADE")
    op.execute("DROP TABLE IF EXISTS tasks CASCADE")
    op.execute("DROP TABLE IF EXISTS one_time_passwords CASCADE")
    op.execute("DROP TABLE IF EXISTS users CASCADE")

    op.execute("DROP TYPE IF EXISTS historystatus")
    op.execute("DROP TYPE IF EXISTS reminderstatus")
    op.execute("DROP TYPE IF EXISTS reminderfrequency")
    op.execute("DROP TYPE IF EXISTS remindertype")
