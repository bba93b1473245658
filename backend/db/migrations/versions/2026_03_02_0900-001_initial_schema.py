"""Initial schema - routes, waypoints, route passengers, check-ins, alerts and audit log

Revision ID: 001
Revises:
Create Date: 2026-03-02 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create routes table
    op.create_table(
        'routes',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('vehicle_id', sa.String(), nullable=False),
        sa.Column('driver_id', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='scheduled'),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=False),
        sa.Column('actual_start_time', sa.DateTime(), nullable=True),
        sa.Column('actual_end_time', sa.DateTime(), nullable=True),
        sa.Column('estimated_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('actual_duration', sa.Integer(), nullable=True),
        sa.Column('total_distance', sa.Float(), nullable=False, server_default='0'),
        sa.Column('passenger_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_time > start_time', name='ck_routes_window'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_routes_company_id', 'routes', ['company_id'])
    op.create_index('ix_routes_company_status', 'routes', ['company_id', 'status'])
    op.create_index('ix_routes_vehicle_window', 'routes', ['vehicle_id', 'start_time', 'end_time'])
    op.create_index('ix_routes_driver_window', 'routes', ['driver_id', 'start_time', 'end_time'])

    # Create waypoints table
    op.create_table(
        'waypoints',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('route_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('address', sa.String(), nullable=False, server_default=''),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('route_id', 'order', name='uq_waypoint_route_order')
    )
    op.create_index('ix_waypoints_route_id', 'waypoints', ['route_id'])

    # Create route_passengers table
    op.create_table(
        'route_passengers',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('route_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('passenger_id', sa.String(), nullable=False),
        sa.Column('waypoint_index', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('checkin_time', sa.DateTime(), nullable=True),
        sa.Column('checkout_time', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['route_id'], ['routes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('route_id', 'passenger_id', 'type', name='uq_route_passenger_type')
    )
    op.create_index('ix_route_passengers_route_id', 'route_passengers', ['route_id'])

    # Create checkins table
    op.create_table(
        'checkins',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('route_id', sa.String(), nullable=False),
        sa.Column('passenger_id', sa.String(), nullable=False),
        sa.Column('driver_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='confirmed'),
        sa.Column('distance_meters', sa.Float(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_checkins_company_id', 'checkins', ['company_id'])
    op.create_index(
        'ix_checkins_route_passenger_type', 'checkins',
        ['route_id', 'passenger_id', 'type', 'timestamp']
    )

    # Create alerts table
    op.create_table(
        'alerts',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False),
        sa.Column('severity', sa.String(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=True),
        sa.Column('entity_id', sa.String(), nullable=True),
        sa.Column('location', postgresql.JSON(), nullable=True),
        sa.Column('metadata', postgresql.JSON(), nullable=False, server_default='{}'),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('acknowledged_by', sa.String(), nullable=True),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=True),
        sa.Column('resolved_by', sa.String(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('resolution', sa.Text(), nullable=True),
        sa.Column('dismissed_by', sa.String(), nullable=True),
        sa.Column('dismissed_at', sa.DateTime(), nullable=True),
        sa.Column('dismissal_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_alerts_company_status', 'alerts', ['company_id', 'status'])

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('company_id', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('performed_by', sa.String(), nullable=True),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.String(), nullable=False),
        sa.Column('details', postgresql.JSON(), nullable=False, server_default='{}'),
        sa.Column('timestamp', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_company_id', 'audit_logs', ['company_id'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_company_id', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('ix_alerts_company_status', table_name='alerts')
    op.drop_table('alerts')

    op.drop_index('ix_checkins_route_passenger_type', table_name='checkins')
    op.drop_index('ix_checkins_company_id', table_name='checkins')
    op.drop_table('checkins')

    op.drop_index('ix_route_passengers_route_id', table_name='route_passengers')
    op.drop_table('route_passengers')

    op.drop_index('ix_waypoints_route_id', table_name='waypoints')
    op.drop_table('waypoints')

    op.drop_index('ix_routes_driver_window', table_name='routes')
    op.drop_index('ix_routes_vehicle_window', table_name='routes')
    op.drop_index('ix_routes_company_status', table_name='routes')
    op.drop_index('ix_routes_company_id', table_name='routes')
    op.drop_table('routes')
