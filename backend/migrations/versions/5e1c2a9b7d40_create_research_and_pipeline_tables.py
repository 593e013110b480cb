"""Create research run and pipeline tables

Revision ID: 5e1c2a9b7d40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5e1c2a9b7d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

research_run_status = sa.Enum('RUNNING', 'COMPLETED', 'FAILED', name='researchrunstatus')
pipeline_status = sa.Enum('idle', 'running', 'completed', 'failed', name='pipelinestatus')
pipeline_phase = sa.Enum(
    'profile_generation',
    'entity_discovery',
    'contact_discovery',
    'personalization',
    'upload',
    name='pipelinephase',
)


def upgrade() -> None:
    op.create_table(
        'research_runs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('subject', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=True),
        sa.Column('status', research_run_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_research_runs_owner_id'), 'research_runs', ['owner_id'], unique=False)

    op.create_table(
        'research_step_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('run_id', sa.Uuid(), nullable=False),
        sa.Column('step_name', sa.String(), nullable=False),
        sa.Column('output', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['run_id'], ['research_runs.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_research_step_results_run_id'), 'research_step_results', ['run_id'], unique=False)

    op.create_table(
        'research_reports',
        sa.Column('run_id', sa.Uuid(), nullable=False),
        sa.Column('content_json', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['run_id'], ['research_runs.id'], ),
        sa.PrimaryKeyConstraint('run_id')
    )

    op.create_table(
        'pipeline_runs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=True),
        sa.Column('status', pipeline_status, nullable=False),
        sa.Column('current_phase', pipeline_phase, nullable=True),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('entities_processed', sa.Integer(), nullable=False),
        sa.Column('contacts_found', sa.Integer(), nullable=False),
        sa.Column('artifacts_generated', sa.Integer(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('task_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pipeline_runs_owner_id'), 'pipeline_runs', ['owner_id'], unique=False)

    op.create_table(
        'pipeline_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('pipeline_id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=True),
        sa.Column('results_data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['pipeline_id'], ['pipeline_runs.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_pipeline_results_pipeline_id'), 'pipeline_results', ['pipeline_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_pipeline_results_pipeline_id'), table_name='pipeline_results')
    op.drop_table('pipeline_results')
    op.drop_index(op.f('ix_pipeline_runs_owner_id'), table_name='pipeline_runs')
    op.drop_table('pipeline_runs')
    op.drop_table('research_reports')
    op.drop_index(op.f('ix_research_step_results_run_id'), table_name='research_step_results')
    op.drop_table('research_step_results')
    op.drop_index(op.f('ix_research_runs_owner_id'), table_name='research_runs')
    op.drop_table('research_runs')
    pipeline_phase.drop(op.get_bind(), checkfirst=True)
    pipeline_status.drop(op.get_bind(), checkfirst=True)
    research_run_status.drop(op.get_bind(), checkfirst=True)
