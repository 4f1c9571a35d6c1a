"""initial_schema

Revision ID: 3f2a9c1d7b44
Revises:
Create Date: 2026-10-01 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b44'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True,
                     server_default=sa.text('gen_random_uuid()'))


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False,
                     server_default=sa.text('NOW()'))


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # Taxonomy tables share the same shape
    for table in ('qualifications', 'boards', 'subjects', 'year_groups'):
        op.create_table(
            table,
            _uuid_pk(),
            sa.Column('name', sa.Text, nullable=False),
            sa.Column('description', sa.Text, nullable=True),
            _created_at(),
        )

    op.create_table(
        'courses',
        _uuid_pk(),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('qualification_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('qualifications.id', ondelete='SET NULL'), nullable=True),
        sa.Column('board_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('boards.id', ondelete='SET NULL'), nullable=True),
        sa.Column('subject_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('subjects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('year_group_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('year_groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', postgresql.UUID(as_uuid=True), nullable=True),
        _created_at(),
    )

    op.create_table(
        'schools',
        _uuid_pk(),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('address', sa.Text, nullable=True),
        sa.Column('contact_email', sa.Text, nullable=True),
        sa.Column('contact_phone', sa.Text, nullable=True),
        _created_at(),
    )

    op.create_table(
        'school_subscriptions',
        _uuid_pk(),
        sa.Column('school_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('schools.id', ondelete='CASCADE'), nullable=False),
        sa.Column('course_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.text('true')),
        sa.Column('subscribed_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.UniqueConstraint('school_id', 'course_id', name='uq_school_course'),
    )

    op.create_table(
        'exams',
        _uuid_pk(),
        sa.Column('name', sa.Text, nullable=False),
        sa.Column('course_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        _created_at(),
    )
    op.create_index('idx_exams_course', 'exams', ['course_id'])

    op.create_table(
        'questions',
        _uuid_pk(),
        sa.Column('exam_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('exams.id', ondelete='CASCADE'), nullable=False),
        sa.Column('text', sa.Text, nullable=False),
        sa.Column('image_url', sa.Text, nullable=True),
        sa.Column('max_marks', sa.Integer, nullable=False),
        sa.Column('question_order', sa.Integer, nullable=False, server_default='0'),
        _created_at(),
        sa.CheckConstraint('max_marks >= 1', name='positive_max_marks'),
    )
    op.create_index('idx_questions_exam', 'questions', ['exam_id'])

    op.create_table(
        'student_answers',
        _uuid_pk(),
        sa.Column('question_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('student_name', sa.Text, nullable=False),
        sa.Column('text_answer', sa.Text, nullable=True),
        sa.Column('image_answer_url', sa.Text, nullable=True),
        sa.Column('submitted_at', sa.TIMESTAMP(timezone=True), nullable=False,
                  server_default=sa.text('NOW()')),
        sa.Column('evaluated_result', postgresql.JSONB, nullable=True),
    )
    op.create_index('idx_student_answers_question', 'student_answers', ['question_id'])


def downgrade() -> None:
    op.drop_index('idx_student_answers_question', table_name='student_answers')
    op.drop_table('student_answers')
    op.drop_index('idx_questions_exam', table_name='questions')
    op.drop_table('questions')
    op.drop_index('idx_exams_course', table_name='exams')
    op.drop_table('exams')
    op.drop_table('school_subscriptions')
    op.drop_table('schools')
    op.drop_table('courses')
    for table in ('year_groups', 'subjects', 'boards', 'qualifications'):
        op.drop_table(table)
