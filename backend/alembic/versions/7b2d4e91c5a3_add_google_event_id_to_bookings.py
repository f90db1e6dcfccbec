"""Add google_event_id to bookings

Revision ID: 7b2d4e91c5a3
Revises: 3f1c9a7e2b40
Create Date: 2026-10-17 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7b2d4e91c5a3'
down_revision: Union[str, None] = '3f1c9a7e2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Event created in the doctor's Google Calendar for a confirmed booking
    op.add_column('bookings', sa.Column('google_event_id', sa.String(length=255), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table('bookings') as batch_op:
        batch_op.drop_column('google_event_id')
