"""Rule journal schema

Revision ID: 20250106_001
Revises: 
Create Date: 2025-01-06

Tables:
- rules (current state)
- rule_versions (append-only snapshots, unique per rule and number)
- rule_history_events (append-only semantic events)

Versions and events carry rule_id without a foreign key so they survive
deletion of the rule.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20250106_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ========================================================================
    # 1. RULES
    # ========================================================================
    op.create_table(
        'rules',
        sa.Column('id', sa.Uuid, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),  # Entry, Exit, Risk Management, ...
        sa.Column('description', postgresql.JSONB, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        
        sa.PrimaryKeyConstraint('id', name='pk_rules'),
        sa.Index('idx_rule_category', 'category'),
        sa.Index('idx_rule_active', 'is_active'),
    )
    
    # ========================================================================
    # 2. VERSION LEDGER
    # ========================================================================
    op.create_table(
        'rule_versions',
        sa.Column('id', sa.Uuid, nullable=False),
        sa.Column('rule_id', sa.Uuid, nullable=False),
        sa.Column('version_number', sa.Integer, nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('description', postgresql.JSONB, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        
        sa.PrimaryKeyConstraint('id', name='pk_rule_versions'),
        sa.UniqueConstraint('rule_id', 'version_number', name='uq_rule_version_number'),
        sa.Index('idx_rule_version_rule', 'rule_id'),
    )
    
    # ========================================================================
    # 3. HISTORY LOG
    # ========================================================================
    op.create_table(
        'rule_history_events',
        sa.Column('sequence', sa.Integer, nullable=False, autoincrement=True),  # tie-breaker for equal timestamps
        sa.Column('id', sa.Uuid, nullable=False),
        sa.Column('rule_id', sa.Uuid, nullable=False),
        sa.Column('rule_name', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(16), nullable=False),  # created, updated, activated, deactivated, deleted
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', postgresql.JSONB),
        
        sa.PrimaryKeyConstraint('sequence', name='pk_rule_history_events'),
        sa.UniqueConstraint('id', name='uq_rule_history_events_id'),
        sa.Index('idx_rule_history_rule', 'rule_id'),
        sa.Index('idx_rule_history_type', 'event_type'),
        sa.Index('idx_rule_history_time', 'timestamp'),
    )


def downgrade() -> None:
    op.drop_table('rule_history_events')
    op.drop_table('rule_versions')
    op.drop_table('rules')
