"""Add flow engine tables: flows, nodes, edges, versions, trigger subscriptions/events, executions, steps

Revision ID: add_flow_engine_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "add_flow_engine_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create integration_flows table
    op.create_table(
        "integration_flows",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("trigger_config", sa.JSON(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("active_version", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_integration_flows_tenant_id", "integration_flows", ["tenant_id"], unique=False)
    op.create_index("idx_integration_flows_tenant_status", "integration_flows", ["tenant_id", "status"], unique=False)

    # Create integration_flow_nodes table
    op.create_table(
        "integration_flow_nodes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("node_id", sa.String(length=100), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("config", sa.JSON(), nullable=True),
        sa.Column("position", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["flow_id"], ["integration_flows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("flow_id", "node_id", name="uq_flow_nodes_flow_node"),
    )
    op.create_index("ix_integration_flow_nodes_flow_id", "integration_flow_nodes", ["flow_id"], unique=False)

    # Create integration_flow_edges table
    op.create_table(
        "integration_flow_edges",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("source_node", sa.String(length=100), nullable=False),
        sa.Column("source_handle", sa.String(length=100), nullable=False, server_default="output"),
        sa.Column("target_node", sa.String(length=100), nullable=False),
        sa.Column("target_handle", sa.String(length=100), nullable=False, server_default="input"),
        sa.Column("condition", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["flow_id"], ["integration_flows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_flow_edges_flow_source", "integration_flow_edges", ["flow_id", "source_node"], unique=False)
    op.create_index("idx_flow_edges_flow_target", "integration_flow_edges", ["flow_id", "target_node"], unique=False)

    # Create integration_flow_versions table
    op.create_table(
        "integration_flow_versions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("definition", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["flow_id"], ["integration_flows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("flow_id", "version", name="uq_flow_versions_flow_version"),
    )
    op.create_index("ix_integration_flow_versions_flow_id", "integration_flow_versions", ["flow_id"], unique=False)

    # Create integration_trigger_subscriptions table
    op.create_table(
        "integration_trigger_subscriptions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("connector_name", sa.String(length=100), nullable=False),
        sa.Column("trigger_name", sa.String(length=100), nullable=False),
        sa.Column("connection_id", sa.String(length=100), nullable=True),
        sa.Column("config", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("webhook_id", sa.String(length=255), nullable=True),
        sa.Column("webhook_secret", sa.String(length=64), nullable=True),
        sa.Column("webhook_registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("polling_state", sa.JSON(), nullable=True),
        sa.Column("last_polled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["flow_id"], ["integration_flows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_integration_trigger_subscriptions_flow_id", "integration_trigger_subscriptions", ["flow_id"], unique=False
    )
    op.create_index(
        "idx_trigger_subscriptions_connector_status",
        "integration_trigger_subscriptions",
        ["connector_name", "status"],
        unique=False,
    )

    # Create integration_trigger_events table
    op.create_table(
        "integration_trigger_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("data", sa.JSON(), nullable=False),
        sa.Column("deduplication_key", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(
            ["subscription_id"], ["integration_trigger_subscriptions.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "deduplication_key", name="uq_trigger_events_subscription_dedup"),
    )
    op.create_index("ix_integration_trigger_events_created_at", "integration_trigger_events", ["created_at"], unique=False)
    op.create_index("idx_trigger_events_flow_status", "integration_trigger_events", ["flow_id", "status"], unique=False)

    # Create integration_flow_executions table
    op.create_table(
        "integration_flow_executions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("flow_id", sa.Uuid(), nullable=False),
        sa.Column("tenant_id", sa.Uuid(), nullable=True),
        sa.Column("trigger_event_id", sa.Uuid(), nullable=True),
        sa.Column("flow_version", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="running"),
        sa.Column("trigger_data", sa.JSON(), nullable=True),
        sa.Column("context", sa.JSON(), nullable=True),
        sa.Column("state", sa.JSON(), nullable=True),
        sa.Column("output", sa.JSON(), nullable=True),
        sa.Column("error", sa.JSON(), nullable=True),
        sa.Column("nodes_executed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("duration_ms", sa.Float(), nullable=True),
        sa.Column("resume_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("revision", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["flow_id"], ["integration_flows.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("trigger_event_id"),
    )
    op.create_index("ix_integration_flow_executions_tenant_id", "integration_flow_executions", ["tenant_id"], unique=False)
    op.create_index("idx_flow_executions_flow_status", "integration_flow_executions", ["flow_id", "status"], unique=False)
    op.create_index(
        "idx_flow_executions_tenant_status",
        "integration_flow_executions",
        ["tenant_id", "status", "created_at"],
        unique=False,
    )

    # Create integration_flow_step_executions table
    op.create_table(
        "integration_flow_step_executions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("execution_id", sa.Uuid(), nullable=False),
        sa.Column("node_id", sa.String(length=100), nullable=False),
        sa.Column("node_type", sa.String(length=50), nullable=False),
        sa.Column("node_name", sa.String(length=255), nullable=False),
        sa.Column("input", sa.JSON(), nullable=True),
        sa.Column("output", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("error", sa.JSON(), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_ms", sa.Float(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["execution_id"], ["integration_flow_executions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_integration_flow_step_executions_execution_id",
        "integration_flow_step_executions",
        ["execution_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_table("integration_flow_step_executions")
    op.drop_table("integration_flow_executions")
    op.drop_table("integration_trigger_events")
    op.drop_table("integration_trigger_subscriptions")
    op.drop_table("integration_flow_versions")
    op.drop_table("integration_flow_edges")
    op.drop_table("integration_flow_nodes")
    op.drop_table("integration_flows")
