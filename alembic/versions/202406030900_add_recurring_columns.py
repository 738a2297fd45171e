"""add recurring columns to transactions

Revision ID: 202406030900
Revises: 202406010000
Create Date: 2024-06-03 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202406030900"
down_revision = "202406010000"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("transactions") as batch_op:
        batch_op.add_column(
            sa.Column(
                "is_recurring",
                sa.Boolean(),
                nullable=False,
                server_default=sa.false(),
            )
        )
        batch_op.add_column(sa.Column("recurring_start_date", sa.Date()))
        batch_op.add_column(sa.Column("recurring_end_date", sa.Date()))


def downgrade():
    with op.batch_alter_table("transactions") as batch_op:
        batch_op.drop_column("recurring_end_date")
        batch_op.drop_column("recurring_start_date")
        batch_op.drop_column("is_recurring")
