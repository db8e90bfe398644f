"""initial billing schema: accounts, staff, packages, subscriptions, buildings, floors, rooms

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.Enum('admin', 'landlord', 'staff', 'resident', name='account_role'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)

    op.create_table(
        'staff',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['landlord_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('account_id'),
    )
    op.create_index('ix_staff_landlord_id', 'staff', ['landlord_id'])

    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Integer(), nullable=False, comment='VND; always 0 for trial packages'),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('room_limit', sa.Integer(), nullable=False, comment='-1 = unlimited'),
        sa.Column('type', sa.Enum('trial', 'paid', name='package_type'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['created_by'], ['accounts.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('package_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=True, comment='set once payment confirms the period'),
        sa.Column(
            'status',
            sa.Enum('pending_payment', 'active', 'upcoming', 'expired', 'cancelled', name='subscription_status'),
            nullable=False,
        ),
        sa.Column('amount', sa.Integer(), nullable=False, comment='VND'),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('room_limit', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.Enum('free', 'vnpay', 'momo', 'manual', name='payment_method'), nullable=False),
        sa.Column('payment_id', sa.String(length=100), nullable=True, comment='vnp_TransactionNo on success'),
        sa.Column('payment_url', sa.Text(), nullable=True),
        sa.Column('vnp_expire_date', sa.DateTime(), nullable=True, comment='payment_url TTL'),
        sa.Column('transaction_ref', sa.String(length=100), nullable=True, comment='last vnp_TxnRef minted'),
        sa.Column('is_trial', sa.Boolean(), nullable=False),
        sa.Column('is_renewal', sa.Boolean(), nullable=False),
        sa.Column('renewed_from', sa.Integer(), nullable=True),
        sa.Column('renewed_to', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['package_id'], ['packages.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['renewed_from'], ['subscriptions.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['renewed_to'], ['subscriptions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_landlord_id', 'subscriptions', ['landlord_id'])
    op.create_index('ix_subscriptions_package_id', 'subscriptions', ['package_id'])
    op.create_index('ix_subscriptions_status_end_date', 'subscriptions', ['status', 'end_date'])
    op.create_index('ix_subscriptions_landlord_status', 'subscriptions', ['landlord_id', 'status'])

    op.create_table(
        'buildings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=False),
        sa.Column('status', sa.Enum('active', 'inactive', name='building_status'), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['accounts.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_buildings_landlord_id', 'buildings', ['landlord_id'])
    op.create_index('ix_buildings_is_deleted', 'buildings', ['is_deleted'])

    op.create_table(
        'floors',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('building_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('active', 'inactive', name='floor_status'), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['building_id'], ['buildings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_floors_building_id', 'floors', ['building_id'])
    op.create_index('ix_floors_is_deleted', 'floors', ['is_deleted'])

    op.create_table(
        'rooms',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('building_id', sa.Integer(), nullable=False),
        sa.Column('floor_id', sa.Integer(), nullable=False),
        sa.Column('room_number', sa.String(length=50), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('available', 'rented', 'maintenance', name='room_status'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['building_id'], ['buildings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['floor_id'], ['floors.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_rooms_building_id', 'rooms', ['building_id'])
    op.create_index('ix_rooms_floor_id', 'rooms', ['floor_id'])
    op.create_index('ix_rooms_is_deleted', 'rooms', ['is_deleted'])


def downgrade() -> None:
    op.drop_table('rooms')
    op.drop_table('floors')
    op.drop_table('buildings')
    op.drop_table('subscriptions')
    op.drop_table('packages')
    op.drop_table('staff')
    op.drop_table('accounts')
