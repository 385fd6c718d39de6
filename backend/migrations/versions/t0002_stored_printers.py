"""Remembered printer per terminal

Revision ID: t0002_stored_printers
Revises: t0001_initial
Create Date: 2026-10-17

This migration adds:
1. StoredPrinter (last successfully connected port, one row per terminal)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 't0002_stored_printers'
down_revision = 't0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('stored_printers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('terminal_id', sa.String(length=64), nullable=False),
        sa.Column('port', sa.String(length=255), nullable=False),
        sa.Column('device_name', sa.String(length=120), nullable=True),
        sa.Column('baudrate', sa.Integer(), nullable=False, server_default='9600'),
        sa.Column('last_connected_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('terminal_id', name='uq_stored_printers_terminal'),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table('stored_printers')
