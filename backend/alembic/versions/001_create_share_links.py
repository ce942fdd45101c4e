"""create share_links

Revision ID: 001
Revises: 
Create Date: 2025-06-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'share_links',
        sa.Column('slug', sa.String(32), primary_key=True),
        sa.Column('token', sa.Text(), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_share_links_token_hash', 'share_links', ['token_hash'])
    op.create_index('ix_share_links_expires_at', 'share_links', ['expires_at'])


def downgrade() -> None:
    op.drop_index('ix_share_links_expires_at', table_name='share_links')
    op.drop_index('ix_share_links_token_hash', table_name='share_links')
    op.drop_table('share_links')
