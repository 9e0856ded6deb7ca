"""
Initial lifecycle schema: users, facilities, jobs, applications,
verifications, staff invitations and notifications

Revision ID: 20261018_0000
Revises:
Create Date: 2026-10-18 00:00:00.000000+00:00
"""
from alembic import op
import sqlalchemy as sa

from locum.database_types import GUID, JSONDocument

# revision identifiers, used by Alembic.
revision = '20261018_0000'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.Enum('DOCTOR', 'EMPLOYER', 'ADMIN', name='user_role'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)
    op.create_index(op.f('ix_users_role'), 'users', ['role'], unique=False)

    op.create_table(
        'doctor_profiles',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('specialty', sa.String(length=255), nullable=True),
        sa.Column('registration_number', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_doctor_profiles_user_id'), 'doctor_profiles', ['user_id'], unique=True)

    op.create_table(
        'facilities',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('owner_user_id', GUID(), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_facilities_owner_user_id'), 'facilities', ['owner_user_id'], unique=False)

    op.create_table(
        'facility_staff',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('facility_id', GUID(), nullable=False),
        sa.Column('user_id', GUID(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['facility_id'], ['facilities.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('facility_id', 'user_id', name='uq_facility_staff_user'),
    )
    op.create_index(op.f('ix_facility_staff_facility_id'), 'facility_staff', ['facility_id'], unique=False)
    op.create_index(op.f('ix_facility_staff_user_id'), 'facility_staff', ['user_id'], unique=False)

    op.create_table(
        'jobs',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('facility_id', GUID(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('urgency', sa.String(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('pay_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('pay_basis', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['facility_id'], ['facilities.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_jobs_facility_id'), 'jobs', ['facility_id'], unique=False)
    op.create_index('idx_jobs_facility_status', 'jobs', ['facility_id', 'status'], unique=False)

    op.create_table(
        'job_applications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('job_id', GUID(), nullable=False),
        sa.Column('doctor_profile_id', GUID(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('cover_letter', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('applied_at', sa.DateTime(), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('employer_approved_at', sa.DateTime(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['doctor_profile_id'], ['doctor_profiles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('job_id', 'doctor_profile_id', name='uq_application_job_doctor'),
    )
    op.create_index(op.f('ix_job_applications_job_id'), 'job_applications', ['job_id'], unique=False)
    op.create_index(
        op.f('ix_job_applications_doctor_profile_id'), 'job_applications', ['doctor_profile_id'], unique=False
    )
    op.create_index('idx_applications_job_status', 'job_applications', ['job_id', 'status'], unique=False)

    op.create_table(
        'verifications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('subject_kind', sa.String(), nullable=False),
        sa.Column('subject_id', GUID(), nullable=False),
        sa.Column('fields', JSONDocument(), nullable=False),
        sa.Column('document_urls', JSONDocument(), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('reviewed_by_user_id', GUID(), nullable=True),
        sa.ForeignKeyConstraint(['reviewed_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('subject_kind', 'subject_id', name='uq_verification_subject'),
    )
    op.create_index(op.f('ix_verifications_subject_id'), 'verifications', ['subject_id'], unique=False)

    op.create_table(
        'staff_invitations',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('facility_id', GUID(), nullable=False),
        sa.Column('invitee_email', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('invited_by_user_id', GUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['facility_id'], ['facilities.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['invited_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_staff_invitations_facility_id'), 'staff_invitations', ['facility_id'], unique=False)
    op.create_index(op.f('ix_staff_invitations_invitee_email'), 'staff_invitations', ['invitee_email'], unique=False)
    op.create_index(op.f('ix_staff_invitations_token_hash'), 'staff_invitations', ['token_hash'], unique=True)
    op.create_index(
        'idx_invitation_facility_email', 'staff_invitations', ['facility_id', 'invitee_email'], unique=False
    )

    op.create_table(
        'notifications',
        sa.Column('id', GUID(), nullable=False),
        sa.Column('recipient_user_id', GUID(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('action_url', sa.String(length=500), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('metadata', JSONDocument(), nullable=True),
        sa.Column('job_id', GUID(), nullable=True),
        sa.Column('job_application_id', GUID(), nullable=True),
        sa.Column('verification_id', GUID(), nullable=True),
        sa.Column('staff_invitation_id', GUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['recipient_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['job_id'], ['jobs.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['job_application_id'], ['job_applications.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['verification_id'], ['verifications.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['staff_invitation_id'], ['staff_invitations.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_notifications_inbox', 'notifications', ['recipient_user_id', 'is_read', 'created_at'], unique=False
    )


def downgrade() -> None:
    op.drop_index('idx_notifications_inbox', table_name='notifications')
    op.drop_table('notifications')

    op.drop_index('idx_invitation_facility_email', table_name='staff_invitations')
    op.drop_index(op.f('ix_staff_invitations_token_hash'), table_name='staff_invitations')
    op.drop_index(op.f('ix_staff_invitations_invitee_email'), table_name='staff_invitations')
    op.drop_index(op.f('ix_staff_invitations_facility_id'), table_name='staff_invitations')
    op.drop_table('staff_invitations')

    op.drop_index(op.f('ix_verifications_subject_id'), table_name='verifications')
    op.drop_table('verifications')

    op.drop_index('idx_applications_job_status', table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_doctor_profile_id'), table_name='job_applications')
    op.drop_index(op.f('ix_job_applications_job_id'), table_name='job_applications')
    op.drop_table('job_applications')

    op.drop_index('idx_jobs_facility_status', table_name='jobs')
    op.drop_index(op.f('ix_jobs_facility_id'), table_name='jobs')
    op.drop_table('jobs')

    op.drop_index(op.f('ix_facility_staff_user_id'), table_name='facility_staff')
    op.drop_index(op.f('ix_facility_staff_facility_id'), table_name='facility_staff')
    op.drop_table('facility_staff')

    op.drop_index(op.f('ix_facilities_owner_user_id'), table_name='facilities')
    op.drop_table('facilities')

    op.drop_index(op.f('ix_doctor_profiles_user_id'), table_name='doctor_profiles')
    op.drop_table('doctor_profiles')

    op.drop_index(op.f('ix_users_role'), table_name='users')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
    sa.Enum(name='user_role').drop(op.get_bind(), checkfirst=True)
