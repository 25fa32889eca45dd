"""Initial schema: lead_groups, leads, recordings, analyses, metrics_aggregates

Revision ID: 3f1a9c2d7e45
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e45'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('lead_groups',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('group_name', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lead_groups_user_id', 'lead_groups', ['user_id'])

    op.create_table('leads',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('contact', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('other', sa.JSON(), nullable=True),
        sa.Column('group_id', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['group_id'], ['lead_groups.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_leads_user_id', 'leads', ['user_id'])
    op.create_index('ix_leads_group_id', 'leads', ['group_id'])

    op.create_table('recordings',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('lead_id', sa.Text(), nullable=True),
        sa.Column('file_name', sa.Text(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('stored_file_url', sa.Text(), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('transcript', sa.Text(), nullable=True),
        sa.Column('call_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'file_name', name='uq_recording_user_file_name'),
    )
    op.create_index('ix_recordings_user_id', 'recordings', ['user_id'])
    op.create_index('ix_recordings_lead_id', 'recordings', ['lead_id'])

    op.create_table('analyses',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('recording_id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('sentiments_score', sa.Float(), nullable=True),
        sa.Column('engagement_score', sa.Float(), nullable=True),
        sa.Column('confidence_score_executive', sa.Float(), nullable=True),
        sa.Column('confidence_score_person', sa.Float(), nullable=True),
        sa.Column('participants', sa.JSON(), nullable=True),
        sa.Column('lead_type', sa.Text(), nullable=True),
        sa.Column('objections_handeled', sa.Text(), nullable=True),
        sa.Column('no_of_objections_detected', sa.Integer(), nullable=True),
        sa.Column('no_of_objections_handeled', sa.Integer(), nullable=True),
        sa.Column('next_steps', sa.Text(), nullable=True),
        sa.Column('improvements', sa.Text(), nullable=True),
        sa.Column('call_outcome', sa.Text(), nullable=True),
        sa.Column('short_summary', sa.Text(), nullable=True),
        sa.Column('lead_type_explanation', sa.Text(), nullable=True),
        sa.Column('sentiments_explanation', sa.Text(), nullable=True),
        sa.Column('engagement_explanation', sa.Text(), nullable=True),
        sa.Column('confidence_explanation_executive', sa.Text(), nullable=True),
        sa.Column('confidence_explanation_person', sa.Text(), nullable=True),
        sa.Column('objections_detected', sa.Text(), nullable=True),
        sa.Column('objections_handling_details', sa.Text(), nullable=True),
        sa.Column('next_steps_detailed', sa.Text(), nullable=True),
        sa.Column('improvements_for_team', sa.Text(), nullable=True),
        sa.Column('call_outcome_rationale', sa.Text(), nullable=True),
        sa.Column('evidence_quotes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['recording_id'], ['recordings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('recording_id'),
    )
    op.create_index('ix_analyses_user_id', 'analyses', ['user_id'])

    op.create_table('metrics_aggregates',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_calls', sa.Integer(), nullable=True),
        sa.Column('avg_sentiment', sa.Float(), nullable=True),
        sa.Column('avg_engagement', sa.Float(), nullable=True),
        sa.Column('conversion_rate', sa.Float(), nullable=True),
        sa.Column('objections_rate', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'date', name='uq_metrics_aggregate_user_date'),
    )
    op.create_index('ix_metrics_aggregates_user_id', 'metrics_aggregates', ['user_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_metrics_aggregates_user_id', 'metrics_aggregates')
    op.drop_table('metrics_aggregates')
    op.drop_index('ix_analyses_user_id', 'analyses')
    op.drop_table('analyses')
    op.drop_index('ix_recordings_lead_id', 'recordings')
    op.drop_index('ix_recordings_user_id', 'recordings')
    op.drop_table('recordings')
    op.drop_index('ix_leads_group_id', 'leads')
    op.drop_index('ix_leads_user_id', 'leads')
    op.drop_table('leads')
    op.drop_index('ix_lead_groups_user_id', 'lead_groups')
    op.drop_table('lead_groups')
