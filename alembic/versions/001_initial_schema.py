"""Stored objects table

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Call recordings (call-audio) and call logs (call-logs)
    op.create_table(
        'stored_objects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('container', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(), nullable=False),
        sa.Column('data', sa.LargeBinary(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('container', 'name', name='uq_stored_objects_container_name'),
    )
    op.create_index(op.f('ix_stored_objects_id'), 'stored_objects', ['id'], unique=False)
    op.create_index(op.f('ix_stored_objects_container'), 'stored_objects', ['container'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_stored_objects_container'), table_name='stored_objects')
    op.drop_index(op.f('ix_stored_objects_id'), table_name='stored_objects')
    op.drop_table('stored_objects')
