"""Create exam engine tables

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


EXAM_CATEGORY = ('practice', 'test', 'recruitment', 'competition', 'challenge')
EXAM_STATUS = ('draft', 'published', 'archived')
QUESTION_TYPE = ('multiple_choice', 'true_false', 'essay', 'fill_in_blank')
SESSION_STATUS = ('active', 'completed', 'expired', 'abandoned')
FINISH_REASON = ('submitted', 'time_expired', 'violation_limit', 'abandoned')
VIOLATION_TYPE = ('tab_switch', 'window_blur', 'copy_attempt', 'paste_attempt', 'fullscreen_exit')


def _enum(values, name):
    return postgresql.ENUM(*values, name=name, create_type=False)


def upgrade() -> None:
    # Create enums
    for values, name in (
        (EXAM_CATEGORY, 'exam_category'),
        (EXAM_STATUS, 'exam_status'),
        (QUESTION_TYPE, 'question_type'),
        (SESSION_STATUS, 'exam_session_status'),
        (FINISH_REASON, 'exam_finish_reason'),
        (VIOLATION_TYPE, 'exam_violation_type'),
    ):
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String, nullable=False),
        sa.Column('role', sa.String, nullable=False, server_default='STUDENT'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('is_banned', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'exams',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('exam_type', sa.String(50), nullable=False),
        sa.Column('subject', sa.String(100), nullable=False),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('category', _enum(EXAM_CATEGORY, 'exam_category'), nullable=False),
        sa.Column('status', _enum(EXAM_STATUS, 'exam_status'), nullable=False, server_default='draft'),
        sa.Column('duration_minutes', sa.Integer, nullable=True),
        sa.Column('passing_score', sa.Integer, nullable=True),
        sa.Column('max_attempts', sa.Integer, nullable=True),
        sa.Column('shuffle_questions', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('randomize_options', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_exams_status_category', 'exams', ['status', 'category'])
    op.create_index('ix_exams_created_by', 'exams', ['created_by'])

    op.create_table(
        'questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('question_type', _enum(QUESTION_TYPE, 'question_type'), nullable=False),
        sa.Column('question_text', sa.Text, nullable=False),
        sa.Column('question_image', sa.String(500), nullable=True),
        sa.Column('points', sa.Integer, nullable=False, server_default='1'),
        sa.Column('explanation', sa.Text, nullable=True),
        sa.Column('time_limit_seconds', sa.Integer, nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'question_options',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('option_text', sa.Text, nullable=False),
        sa.Column('option_image', sa.String(500), nullable=True),
        sa.Column('is_correct', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('order_index', sa.Integer, nullable=False, server_default='0'),
    )
    op.create_index('ix_question_options_question_id', 'question_options', ['question_id'])

    op.create_table(
        'exam_questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('order_index', sa.Integer, nullable=False, server_default='0'),
        sa.UniqueConstraint('exam_id', 'question_id', name='uq_exam_question'),
    )
    op.create_index('ix_exam_questions_exam_order', 'exam_questions', ['exam_id', 'order_index'])

    op.create_table(
        'exam_invitations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('email', sa.String, nullable=True),
        sa.Column('token', sa.String(128), nullable=False, unique=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_exam_invitations_exam_id', 'exam_invitations', ['exam_id'])

    op.create_table(
        'exam_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exams.id'), nullable=False),
        sa.Column('exam_category', _enum(EXAM_CATEGORY, 'exam_category'), nullable=False),
        sa.Column('status', _enum(SESSION_STATUS, 'exam_session_status'), nullable=False, server_default='active'),
        sa.Column('finish_reason', _enum(FINISH_REASON, 'exam_finish_reason'), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('time_limit_minutes', sa.Integer, nullable=True),
        sa.Column('configured_questions', sa.Integer, nullable=True),
        sa.Column('total_questions', sa.Integer, nullable=False),
        sa.Column('shuffle_questions', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('shuffle_options', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('shuffle_seed', sa.String(64), nullable=False),
        sa.Column('answered_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('violation_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('score', sa.Numeric(5, 2), nullable=True),
        sa.Column('correct_count', sa.Integer, nullable=True),
        sa.Column('invitation_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exam_invitations.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_exam_sessions_user_status', 'exam_sessions', ['user_id', 'status'])
    op.create_index('ix_exam_sessions_exam_user', 'exam_sessions', ['exam_id', 'user_id'])

    op.create_table(
        'exam_session_questions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exam_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('position', sa.Integer, nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id'), nullable=False),
        sa.UniqueConstraint('session_id', 'position', name='uq_exam_session_question_position'),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_exam_session_question_id'),
    )

    op.create_table(
        'exam_answers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exam_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('selected_option_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('text_answer', sa.Text, nullable=True),
        sa.Column('is_correct', sa.Boolean, nullable=True),
        sa.Column('time_spent_seconds', sa.Integer, nullable=False, server_default='0'),
        sa.Column('answered_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_exam_answer'),
    )
    op.create_index('ix_exam_answers_session_id', 'exam_answers', ['session_id'])

    op.create_table(
        'exam_violations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('exam_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('violation_type', _enum(VIOLATION_TYPE, 'exam_violation_type'), nullable=False),
        sa.Column('client_ts', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('metadata_json', postgresql.JSONB, nullable=True),
    )
    op.create_index('ix_exam_violations_session_ts', 'exam_violations', ['session_id', 'recorded_at'])


def downgrade() -> None:
    op.drop_table('exam_violations')
    op.drop_table('exam_answers')
    op.drop_table('exam_session_questions')
    op.drop_table('exam_sessions')
    op.drop_table('exam_invitations')
    op.drop_table('exam_questions')
    op.drop_table('question_options')
    op.drop_table('questions')
    op.drop_table('exams')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    op.execute("DROP TYPE IF EXISTS exam_violation_type")
    op.execute("DROP TYPE IF EXISTS exam_finish_reason")
    op.execute("DROP TYPE IF EXISTS exam_session_status")
    op.execute("DROP TYPE IF EXISTS question_type")
    op.execute("DROP TYPE IF EXISTS exam_status")
    op.execute("DROP TYPE IF EXISTS exam_category")
