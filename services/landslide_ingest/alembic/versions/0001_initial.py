"""initial: device_mappings and sensor_readings

Revision ID: 0001_initial
Revises:
Create Date: 2025-07-01 10:00:00

"""
from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "landslide"


def upgrade() -> None:
    op.create_table(
        "device_mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.String(length=128), nullable=False, unique=True),
        sa.Column("internal_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("location_name", sa.String(length=200), nullable=False),
        sa.Column("device_type", sa.String(length=64), nullable=True),
        sa.Column("product_id", sa.String(length=128), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )
    op.create_index("ix_device_mappings_id", "device_mappings", ["id"], schema=SCHEMA)

    op.create_table(
        "sensor_readings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("device_id", sa.String(length=64), nullable=False),
        sa.Column("event_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("service_id", sa.String(length=100), nullable=True),
        sa.Column("product_id", sa.String(length=128), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("humidity", sa.Float(), nullable=True),
        sa.Column("illumination", sa.Float(), nullable=True),
        sa.Column("mpu_temperature", sa.Float(), nullable=True),
        sa.Column("vibration", sa.Integer(), nullable=True),
        sa.Column("risk_level", sa.Float(), nullable=True),
        sa.Column("alarm_active", sa.Boolean(), nullable=True),
        sa.Column("uptime", sa.Float(), nullable=True),
        sa.Column("angle_x", sa.Float(), nullable=True),
        sa.Column("angle_y", sa.Float(), nullable=True),
        sa.Column("angle_z", sa.Float(), nullable=True),
        sa.Column("ultrasonic_distance", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("acceleration_x", sa.Integer(), nullable=True),
        sa.Column("acceleration_y", sa.Integer(), nullable=True),
        sa.Column("acceleration_z", sa.Integer(), nullable=True),
        sa.Column("acceleration_total", sa.Float(), nullable=True),
        sa.Column("gyroscope_x", sa.Integer(), nullable=True),
        sa.Column("gyroscope_y", sa.Integer(), nullable=True),
        sa.Column("gyroscope_z", sa.Integer(), nullable=True),
        sa.Column("gyroscope_total", sa.Float(), nullable=True),
        sa.Column("deformation_distance_3d", sa.Float(), nullable=True),
        sa.Column("deformation_horizontal", sa.Float(), nullable=True),
        sa.Column("deformation_vertical", sa.Float(), nullable=True),
        sa.Column("deformation_velocity", sa.Float(), nullable=True),
        sa.Column("deformation_risk_level", sa.Float(), nullable=True),
        sa.Column("deformation_type", sa.Integer(), nullable=True),
        sa.Column("deformation_confidence", sa.Float(), nullable=True),
        sa.Column("baseline_established", sa.Boolean(), nullable=True),
        sa.Column("calculated_risk", sa.Float(), nullable=False),
        sa.Column("risk_label", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("device_id", "event_time", name="uq_sensor_readings_device_time"),
        schema=SCHEMA,
    )
    op.create_index("ix_sensor_readings_id", "sensor_readings", ["id"], schema=SCHEMA)
    op.create_index("ix_sensor_readings_device_id", "sensor_readings", ["device_id"], schema=SCHEMA)
    op.create_index("ix_sensor_readings_event_time", "sensor_readings", ["event_time"], schema=SCHEMA)


def downgrade() -> None:
    op.drop_table("sensor_readings", schema=SCHEMA)
    op.drop_table("device_mappings", schema=SCHEMA)
