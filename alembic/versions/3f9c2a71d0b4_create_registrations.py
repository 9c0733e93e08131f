"""Create registrations table with row-level security

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2025-09-08 10:42:17.215903

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9c2a71d0b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    tshirt_size = sa.Enum("S", "M", "L", "XL", name="tshirt_size")
    registration_status = sa.Enum(
        "pending", "confirmed", "cancelled", name="registration_status"
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.VARCHAR(), nullable=False),
        sa.Column("full_name", sa.VARCHAR(), nullable=False),
        sa.Column("corporate_email", sa.VARCHAR(), nullable=False),
        sa.Column("employee_id", sa.VARCHAR(), nullable=False),
        sa.Column("company_name", sa.VARCHAR(), nullable=False),
        sa.Column("tshirt_size", tshirt_size, nullable=False),
        sa.Column("emergency_contact", sa.VARCHAR(), nullable=False),
        sa.Column("emergency_phone", sa.VARCHAR(), nullable=False),
        sa.Column(
            "registration_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "status",
            registration_status,
            nullable=False,
            server_default="confirmed",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=True,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=True,
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # One registration per user
    op.create_index(
        op.f("ix_registrations_user_id"), "registrations", ["user_id"], unique=True
    )
    op.create_index(
        op.f("ix_registrations_status"), "registrations", ["status"], unique=False
    )
    op.create_index(
        op.f("ix_registrations_registration_date"),
        "registrations",
        [sa.text("registration_date DESC")],
        unique=False,
    )

    # Keep updated_at current on every row modification
    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
          NEW.updated_at = NOW();
          RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER update_registrations_updated_at
          BEFORE UPDATE ON registrations
          FOR EACH ROW
          EXECUTE FUNCTION update_updated_at_column();
        """
    )

    # Row-level security: the application sets app.user_id / app.user_role
    # per transaction. FORCE applies the policies to the table owner too.
    op.execute("ALTER TABLE registrations ENABLE ROW LEVEL SECURITY;")
    op.execute("ALTER TABLE registrations FORCE ROW LEVEL SECURITY;")
    op.execute(
        """
        CREATE POLICY registrations_select_own_or_admin ON registrations
          FOR SELECT
          USING (
            user_id = current_setting('app.user_id', true)
            OR current_setting('app.user_role', true) = 'admin'
          );
        """
    )
    op.execute(
        """
        CREATE POLICY registrations_insert_own ON registrations
          FOR INSERT
          WITH CHECK (user_id = current_setting('app.user_id', true));
        """
    )
    op.execute(
        """
        CREATE POLICY registrations_update_own ON registrations
          FOR UPDATE
          USING (user_id = current_setting('app.user_id', true))
          WITH CHECK (user_id = current_setting('app.user_id', true));
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("registrations")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column();")
    sa.Enum(name="registration_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="tshirt_size").drop(op.get_bind(), checkfirst=True)
