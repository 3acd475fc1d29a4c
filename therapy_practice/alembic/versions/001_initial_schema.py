"""Initial database schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:12:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON(none_as_null=True).with_variant(postgresql.JSONB(none_as_null=True), "postgresql")


def upgrade():
    # Create clients table
    op.create_table(
        'clients',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_clients')
    )
    op.create_index('ix_clients_therapist_id', 'clients', ['therapist_id'])
    op.create_index('idx_clients_therapist_email', 'clients', ['therapist_id', 'email'])

    # Create questions table
    op.create_table(
        'questions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=True),
        sa.Column('question_text', sa.Text(), nullable=False),
        sa.Column('question_type', sa.String(20), nullable=False),
        sa.Column('options', JSONType, nullable=True),
        sa.Column('help_text', sa.Text(), nullable=True),
        sa.Column('placeholder_text', sa.Text(), nullable=True),
        sa.Column('is_global', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_questions')
    )
    op.create_index('ix_questions_therapist_id', 'questions', ['therapist_id'])
    op.create_index('ix_questions_is_global', 'questions', ['is_global'])

    # Create assessments table
    op.create_table(
        'assessments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=False),
        sa.Column('title', sa.String(100), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('category', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('allow_multiple_submissions', sa.Boolean(), nullable=False),
        sa.Column('show_scores_to_client', sa.Boolean(), nullable=False),
        sa.Column('share_token', sa.String(128), nullable=True),
        sa.Column('scoring_ranges', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_assessments'),
        sa.UniqueConstraint('share_token', name='uq_assessments_share_token')
    )
    op.create_index('ix_assessments_therapist_id', 'assessments', ['therapist_id'])

    # Create assessment_questions table
    op.create_table(
        'assessment_questions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('question_id', sa.String(36), nullable=False),
        sa.Column('question_order', sa.Integer(), nullable=False),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('points', sa.Float(), nullable=True),
        sa.Column('override_question_text', sa.Text(), nullable=True),
        sa.Column('override_options', JSONType, nullable=True),
        sa.Column('override_help_text', sa.Text(), nullable=True),
        sa.Column('section_name', sa.String(100), nullable=True),
        sa.Column('conditional_logic', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_assessment_questions'),
        sa.ForeignKeyConstraint(
            ['assessment_id'], ['assessments.id'],
            name='fk_assessment_questions_assessment_id_assessments', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['question_id'], ['questions.id'],
            name='fk_assessment_questions_question_id_questions'
        ),
        sa.UniqueConstraint('assessment_id', 'question_order', name='uq_assessment_questions_order'),
        sa.UniqueConstraint('assessment_id', 'question_id', name='uq_assessment_questions_question')
    )
    op.create_index('ix_assessment_questions_question_id', 'assessment_questions', ['question_id'])

    # Create assessment_submissions table
    op.create_table(
        'assessment_submissions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('completion_time_seconds', sa.Integer(), nullable=True),
        sa.Column('raw_score', sa.Float(), nullable=True),
        sa.Column('calculated_score', sa.Float(), nullable=True),
        sa.Column('score_interpretation', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('single_submission_key', sa.String(80), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_assessment_submissions'),
        sa.ForeignKeyConstraint(
            ['assessment_id'], ['assessments.id'],
            name='fk_assessment_submissions_assessment_id_assessments', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'],
            name='fk_assessment_submissions_client_id_clients', ondelete='CASCADE'
        ),
        sa.UniqueConstraint('single_submission_key', name='uq_assessment_submissions_single_submission_key')
    )
    op.create_index('ix_assessment_submissions_assessment_id', 'assessment_submissions', ['assessment_id'])
    op.create_index('ix_assessment_submissions_client_id', 'assessment_submissions', ['client_id'])
    op.create_index('ix_assessment_submissions_therapist_id', 'assessment_submissions', ['therapist_id'])
    op.create_index(
        'idx_submissions_assessment_client', 'assessment_submissions', ['assessment_id', 'client_id']
    )

    # Create assessment_assignments table
    op.create_table(
        'assessment_assignments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('assessment_id', sa.String(36), nullable=False),
        sa.Column('client_id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=False),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('submission_id', sa.String(36), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_assessment_assignments'),
        sa.ForeignKeyConstraint(
            ['assessment_id'], ['assessments.id'],
            name='fk_assessment_assignments_assessment_id_assessments', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'],
            name='fk_assessment_assignments_client_id_clients', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['submission_id'], ['assessment_submissions.id'],
            name='fk_assessment_assignments_submission_id_assessment_submissions', ondelete='SET NULL'
        ),
        sa.UniqueConstraint('assessment_id', 'client_id', name='uq_assessment_assignments_pair')
    )
    op.create_index('ix_assessment_assignments_client_id', 'assessment_assignments', ['client_id'])
    op.create_index('ix_assessment_assignments_therapist_id', 'assessment_assignments', ['therapist_id'])

    # Create assessment_responses table
    op.create_table(
        'assessment_responses',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('submission_id', sa.String(36), nullable=False),
        sa.Column('assessment_question_id', sa.String(36), nullable=True),
        sa.Column('question_id', sa.String(36), nullable=True),
        sa.Column('response_value', sa.Text(), nullable=True),
        sa.Column('response_values', JSONType, nullable=True),
        sa.Column('numeric_value', sa.Float(), nullable=True),
        sa.Column('points_earned', sa.Float(), nullable=True),
        sa.Column('question_text_snapshot', sa.Text(), nullable=True),
        sa.Column('question_type_snapshot', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_assessment_responses'),
        sa.ForeignKeyConstraint(
            ['submission_id'], ['assessment_submissions.id'],
            name='fk_assessment_responses_submission_id_assessment_submissions', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['assessment_question_id'], ['assessment_questions.id'],
            name='fk_assessment_responses_assessment_question_id_assessment_questions', ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['question_id'], ['questions.id'],
            name='fk_assessment_responses_question_id_questions', ondelete='SET NULL'
        )
    )
    op.create_index('ix_assessment_responses_submission_id', 'assessment_responses', ['submission_id'])

    # Create notifications table
    op.create_table(
        'notifications',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('therapist_id', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('data', JSONType, nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_notifications')
    )
    op.create_index('ix_notifications_therapist_id', 'notifications', ['therapist_id'])


def downgrade():
    op.drop_table('notifications')
    op.drop_table('assessment_responses')
    op.drop_table('assessment_assignments')
    op.drop_table('assessment_submissions')
    op.drop_table('assessment_questions')
    op.drop_table('assessments')
    op.drop_table('questions')
    op.drop_table('clients')
