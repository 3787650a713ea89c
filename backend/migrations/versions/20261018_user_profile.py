"""Self-service profile fields on users

Revision ID: 20261018_user_profile
Revises: 20261018_initial
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_user_profile"
down_revision = "20261018_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.add_column(sa.Column("preferred_name", sa.String(255), nullable=True))
        batch_op.add_column(sa.Column("avatar_path", sa.String(500), nullable=True))


def downgrade():
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.drop_column("avatar_path")
        batch_op.drop_column("preferred_name")
