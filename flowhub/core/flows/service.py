"""Flow service for flow management, validation and activation."""

import logging
import re
import secrets
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from flowhub.core.db.types import utcnow
from flowhub.core.errors import (
    FlowNotFoundException,
    FlowValidationException,
    NotFoundException,
    ValidationException,
)
from flowhub.core.flows.conditions import ConditionEvaluator
from flowhub.core.flows.graph import FlowGraph, ValidationResult
from flowhub.core.flows.templates import FlowTemplates
from flowhub.core.integrations.hooks import EngineHooks, HookEvent
from flowhub.core.logging import log_engine_event
from flowhub.core.triggers.engine import TriggerEngine
from flowhub.models.flow import Flow, FlowEdge, FlowNode, FlowStatus, FlowVersion
from flowhub.repositories.flow_repository import FlowRepository
from flowhub.schemas.flow import FlowDefinition, FlowExport

logger = logging.getLogger(__name__)


def generate_label(name: str) -> str:
    """Turn an identifier like 'send_email' into 'Send Email'."""
    return re.sub(r"[._-]+", " ", name).strip().title()


def slugify(name: str) -> str:
    """Turn a display name like 'Order Alerts' into 'order_alerts'."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


class FlowService:
    """Service for flow CRUD, structural edits, validation and activation."""

    def __init__(
        self,
        db: Session,
        trigger_engine: TriggerEngine | None = None,
        hooks: EngineHooks | None = None,
        templates: FlowTemplates | None = None,
    ):
        """Initialize service.

        Args:
            db: Database session
            trigger_engine: Used to (un)subscribe the flow trigger on (de)activation
            hooks: Lifecycle listeners
            templates: Flow templates available to create_from_template
        """
        self.db = db
        self.repository = FlowRepository(db)
        self.trigger_engine = trigger_engine
        self.hooks = hooks or (trigger_engine.hooks if trigger_engine else EngineHooks())
        self.templates = templates or FlowTemplates()
        self.condition_evaluator = ConditionEvaluator()

    # Flow CRUD

    def create_flow(
        self,
        slug: str,
        name: str | None = None,
        description: str | None = None,
        tenant_id: UUID | None = None,
        trigger_config: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
        nodes: list[dict[str, Any]] | None = None,
        edges: list[dict[str, Any]] | None = None,
    ) -> Flow:
        """Create a draft flow with optional nodes and edges.

        Args:
            slug: Unique flow slug
            name: Display name (derived from the slug when omitted)
            description: Flow description
            tenant_id: Owning tenant
            trigger_config: {connector, trigger, connection_id, config}
            settings: Flow settings
            nodes: Node definitions
            edges: Edge definitions

        Returns:
            Created flow at version 1 with its snapshot
        """
        if self.repository.get_flow_by_slug(slug) is not None:
            raise ValidationException(f"Flow slug already exists: {slug}", {"slug": slug})

        for edge in edges or []:
            self._validate_edge_condition(edge.get("condition"))

        flow = self.repository.create_flow(
            {
                "slug": slug,
                "name": name or generate_label(slug),
                "description": description,
                "tenant_id": tenant_id,
                "trigger_config": trigger_config,
                "settings": settings or {},
                "status": FlowStatus.DRAFT.value,
                "version": 1,
            }
        )

        for node in nodes or []:
            self.repository.create_node(self._node_data(flow.id, node), commit=False)
        for edge in edges or []:
            self.repository.create_edge(self._edge_data(flow.id, edge), commit=False)
        self.db.commit()
        self.db.refresh(flow)

        self._snapshot(flow)
        logger.info(f"Created flow '{flow.name}' (ID: {flow.id})")
        return flow

    def get_flow(self, flow_id: UUID, tenant_id: UUID | None = None) -> Flow | None:
        return self.repository.get_flow_by_id(flow_id, tenant_id)

    def get_flow_by_slug(self, slug: str) -> Flow | None:
        return self.repository.get_flow_by_slug(slug)

    def list_flows(
        self,
        tenant_id: UUID | None = None,
        status: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Flow]:
        return self.repository.list_flows(tenant_id, status, search, skip, limit)

    def update_flow(
        self,
        flow_id: UUID,
        name: str | None = None,
        description: str | None = None,
        trigger_config: dict[str, Any] | None = None,
        settings: dict[str, Any] | None = None,
    ) -> Flow:
        """Update flow metadata. Settings are merged into the existing ones.

        A changed trigger takes effect on the next activation.
        """
        flow = self._get_flow(flow_id)
        data: dict[str, Any] = {}
        if name is not None:
            data["name"] = name
        if description is not None:
            data["description"] = description
        if trigger_config is not None:
            data["trigger_config"] = trigger_config
            if flow.status == FlowStatus.ACTIVE.value:
                logger.info(f"Trigger of active flow {flow_id} changed; reactivate to resubscribe")
        if settings is not None:
            data["settings"] = {**(flow.settings or {}), **settings}
        return self.repository.update_flow(flow, data)

    async def delete_flow(self, flow_id: UUID) -> bool:
        """Delete a flow, unsubscribing its triggers first."""
        flow = self.repository.get_flow_by_id(flow_id)
        if flow is None:
            return False
        if self.trigger_engine is not None:
            for subscription in self.trigger_engine.get_subscriptions(flow.id):
                await self.trigger_engine.unsubscribe(subscription.id)
        self.repository.delete_flow(flow)
        logger.info(f"Deleted flow {flow_id}")
        return True

    def duplicate_flow(self, flow_id: UUID, new_slug: str | None = None) -> Flow:
        """Create a draft copy of a flow."""
        original = self._get_flow(flow_id)
        definition = self._definition(original)
        return self.create_flow(
            slug=new_slug or f"{original.slug}_copy_{secrets.token_hex(2)}",
            name=f"{original.name} (Copy)",
            description=original.description,
            tenant_id=original.tenant_id,
            trigger_config=original.trigger_config,
            settings=original.settings,
            nodes=definition["nodes"],
            edges=definition["edges"],
        )

    # Templates

    def register_template(self, name: str, template: dict[str, Any]) -> None:
        self.templates.register(name, template)

    def get_templates(self) -> dict[str, dict[str, Any]]:
        return self.templates.all()

    def create_from_template(
        self,
        name: str,
        overrides: dict[str, Any] | None = None,
        tenant_id: UUID | None = None,
    ) -> Flow:
        """Create a draft flow from a registered template.

        Args:
            name: Template name
            overrides: Definition fields replacing the template's (e.g. slug, name, settings)
            tenant_id: Owning tenant

        Raises:
            NotFoundException: If the template is not registered
            pydantic.ValidationError: If the overrides make the definition invalid
        """
        overrides = overrides or {}
        definition = FlowDefinition.model_validate({**self.templates.get(name).model_dump(), **overrides})
        flow_name = definition.name or generate_label(name)
        flow = self.create_flow(
            slug=overrides.get("slug") or f"{slugify(flow_name)}_{secrets.token_hex(2)}",
            name=flow_name,
            description=definition.description,
            tenant_id=tenant_id,
            trigger_config=definition.trigger.model_dump() if definition.trigger else None,
            settings=definition.settings,
            nodes=[node.model_dump() for node in definition.nodes],
            edges=[edge.model_dump() for edge in definition.edges],
        )
        log_engine_event("flow_created_from_template", flow_id=flow.id, template=name)
        return flow

    # Structural edits

    def add_node(
        self,
        flow_id: UUID,
        node_id: str,
        type: str,
        name: str | None = None,
        config: dict[str, Any] | None = None,
        position: dict[str, Any] | None = None,
    ) -> FlowNode:
        """Add a node and bump the flow version."""
        flow = self._get_flow(flow_id)
        if self.repository.get_node(flow.id, node_id) is not None:
            raise ValidationException(f"Node already exists: {node_id}", {"node_id": node_id})

        node = self.repository.create_node(
            self._node_data(
                flow.id,
                {"node_id": node_id, "type": type, "name": name, "config": config, "position": position},
            )
        )
        self._bump_version(flow)
        return node

    def update_node(
        self,
        flow_id: UUID,
        node_id: str,
        name: str | None = None,
        config: dict[str, Any] | None = None,
        position: dict[str, Any] | None = None,
    ) -> FlowNode:
        """Update a node. Position-only changes do not create a new version."""
        flow = self._get_flow(flow_id)
        node = self.repository.get_node(flow.id, node_id)
        if node is None:
            raise NotFoundException(f"Node not found: {node_id}")

        structural = False
        if name is not None:
            node.name = name
            structural = True
        if config is not None:
            node.config = config
            structural = True
        if position is not None:
            node.position = position
        self.db.commit()
        self.db.refresh(node)

        if structural:
            self._bump_version(flow)
        return node

    def delete_node(self, flow_id: UUID, node_id: str) -> bool:
        """Delete a node and its edges."""
        flow = self._get_flow(flow_id)
        node = self.repository.get_node(flow.id, node_id)
        if node is None:
            return False
        self.repository.delete_node(node)
        self._bump_version(flow)
        return True

    def add_edge(
        self,
        flow_id: UUID,
        source_node: str,
        target_node: str,
        source_handle: str = "output",
        target_handle: str = "input",
        condition: Any = None,
    ) -> FlowEdge:
        """Add an edge between existing nodes.

        Raises:
            ConditionSyntaxError: If the condition does not parse
        """
        flow = self._get_flow(flow_id)
        for node_id in (source_node, target_node):
            if self.repository.get_node(flow.id, node_id) is None:
                raise ValidationException(f"Edge references unknown node: {node_id}", {"node_id": node_id})
        self._validate_edge_condition(condition)

        edge = self.repository.create_edge(
            self._edge_data(
                flow.id,
                {
                    "source_node": source_node,
                    "target_node": target_node,
                    "source_handle": source_handle,
                    "target_handle": target_handle,
                    "condition": condition,
                },
            )
        )
        self._bump_version(flow)
        return edge

    def update_edge(
        self,
        edge_id: UUID,
        condition: Any = None,
        source_handle: str | None = None,
        target_handle: str | None = None,
        clear_condition: bool = False,
    ) -> FlowEdge:
        """Update an edge's condition or handles."""
        edge = self.repository.get_edge_by_id(edge_id)
        if edge is None:
            raise NotFoundException(f"Edge not found: {edge_id}")

        if clear_condition:
            edge.condition = None
        elif condition is not None:
            self._validate_edge_condition(condition)
            edge.condition = condition
        if source_handle is not None:
            edge.source_handle = source_handle
        if target_handle is not None:
            edge.target_handle = target_handle
        self.db.commit()
        self.db.refresh(edge)

        self._bump_version(self._get_flow(edge.flow_id))
        return edge

    def delete_edge(self, edge_id: UUID) -> bool:
        edge = self.repository.get_edge_by_id(edge_id)
        if edge is None:
            return False
        flow_id = edge.flow_id
        self.repository.delete_edge(edge)
        self._bump_version(self._get_flow(flow_id))
        return True

    def get_versions(self, flow_id: UUID) -> list[FlowVersion]:
        return self.repository.get_versions(flow_id)

    # Validation & status

    def validate(self, flow_id: UUID) -> dict[str, Any]:
        """Validate a flow's graph and trigger binding.

        Returns:
            {"valid": bool, "errors": [...], "warnings": [...]}
        """
        flow = self._get_flow(flow_id)
        custom_node_types = self.trigger_engine.registry.list_node_types() if self.trigger_engine else ()
        result = FlowGraph.from_flow(flow).validate(custom_node_types)
        self._validate_trigger_config(flow, result)
        return result.to_dict()

    async def activate(self, flow_id: UUID) -> Flow:
        """Validate, snapshot and activate a flow, subscribing its trigger.

        New executions run the version validated here until the next
        activation, whatever edits are made in between.

        Raises:
            FlowValidationException: If validation fails
        """
        flow = self._get_flow(flow_id)
        validation = self.validate(flow_id)
        if not validation["valid"]:
            raise FlowValidationException("Flow validation failed", validation["errors"])

        self._snapshot(flow)
        previous = {"status": flow.status, "active_version": flow.active_version}
        flow = self.repository.update_flow(
            flow, {"status": FlowStatus.ACTIVE.value, "active_version": flow.version}
        )

        if self.trigger_engine is not None and flow.trigger_config:
            trigger = flow.trigger_config
            try:
                for subscription in self.trigger_engine.get_subscriptions(flow.id):
                    await self.trigger_engine.unsubscribe(subscription.id)
                await self.trigger_engine.subscribe(
                    flow.id,
                    trigger["connector"],
                    trigger["trigger"],
                    trigger.get("connection_id"),
                    trigger.get("config") or {},
                )
            except Exception:
                self.repository.update_flow(flow, previous)
                raise

        log_engine_event("flow_activated", flow_id=flow.id, version=flow.version)
        self.hooks.emit(HookEvent.FLOW_ACTIVATED, flow)
        return flow

    async def deactivate(self, flow_id: UUID) -> Flow:
        """Unsubscribe the flow's triggers and disable it."""
        flow = self._get_flow(flow_id)
        if self.trigger_engine is not None:
            for subscription in self.trigger_engine.get_subscriptions(flow.id):
                await self.trigger_engine.unsubscribe(subscription.id)

        flow = self.repository.update_flow(flow, {"status": FlowStatus.DISABLED.value})
        log_engine_event("flow_deactivated", flow_id=flow.id)
        self.hooks.emit(HookEvent.FLOW_DEACTIVATED, flow)
        return flow

    def get_status(self, flow_id: UUID) -> str:
        return self._get_flow(flow_id).status

    # Import / export

    def export_flow(self, flow_id: UUID) -> dict[str, Any]:
        """Export a flow as a portable definition."""
        flow = self._get_flow(flow_id)
        definition = self._definition(flow)
        export = FlowExport(
            exported_at=utcnow(),
            flow=FlowDefinition(
                slug=flow.slug,
                name=flow.name,
                description=flow.description,
                trigger=flow.trigger_config,
                settings=flow.settings or {},
                nodes=definition["nodes"],
                edges=definition["edges"],
            ),
        )
        return export.model_dump(mode="json")

    def import_flow(
        self,
        data: dict[str, Any],
        tenant_id: UUID | None = None,
        slug: str | None = None,
    ) -> Flow:
        """Create a draft flow from an exported definition.

        Raises:
            pydantic.ValidationError: If the definition is malformed
        """
        definition = FlowDefinition.model_validate(data.get("flow", data))
        flow_slug = slug or definition.slug or secrets.token_hex(4)
        return self.create_flow(
            slug=flow_slug,
            name=definition.name,
            description=definition.description,
            tenant_id=tenant_id,
            trigger_config=definition.trigger.model_dump() if definition.trigger else None,
            settings=definition.settings,
            nodes=[node.model_dump() for node in definition.nodes],
            edges=[edge.model_dump() for edge in definition.edges],
        )

    # Helpers

    def _get_flow(self, flow_id: UUID) -> Flow:
        flow = self.repository.get_flow_by_id(flow_id)
        if flow is None:
            raise FlowNotFoundException(f"Flow not found: {flow_id}")
        return flow

    def _node_data(self, flow_id: UUID, node: dict[str, Any]) -> dict[str, Any]:
        node_type = node["type"]
        node_type = getattr(node_type, "value", node_type)
        return {
            "flow_id": flow_id,
            "node_id": node.get("node_id") or secrets.token_hex(4),
            "type": node_type,
            "name": node.get("name") or generate_label(node.get("node_id") or node_type),
            "config": node.get("config") or {},
            "position": node.get("position") or {"x": 0, "y": 0},
        }

    def _edge_data(self, flow_id: UUID, edge: dict[str, Any]) -> dict[str, Any]:
        return {
            "flow_id": flow_id,
            "source_node": edge["source_node"],
            "target_node": edge["target_node"],
            "source_handle": edge.get("source_handle") or "output",
            "target_handle": edge.get("target_handle") or "input",
            "condition": edge.get("condition"),
        }

    def _validate_edge_condition(self, condition: Any) -> None:
        self.condition_evaluator.validate_condition(condition)

    def _validate_trigger_config(self, flow: Flow, result: ValidationResult) -> None:
        trigger = flow.trigger_config
        if not trigger:
            result.warnings.append("Flow has no trigger binding and can only run manually")
            return
        if not trigger.get("connector") or not trigger.get("trigger"):
            result.errors.append("Trigger binding requires 'connector' and 'trigger'")
            return
        if self.trigger_engine is not None and not self.trigger_engine.registry.has_trigger(
            trigger["connector"], trigger["trigger"]
        ):
            result.errors.append(f"Trigger not registered: {trigger['connector']}.{trigger['trigger']}")

    def _definition(self, flow: Flow) -> dict[str, Any]:
        return {
            "nodes": [node.to_definition() for node in flow.nodes],
            "edges": [
                {key: value for key, value in edge.to_definition().items() if key != "id"}
                for edge in flow.edges
            ],
        }

    def _snapshot(self, flow: Flow) -> FlowVersion:
        """Store the flow's current graph as its current version, once."""
        existing = self.repository.get_version(flow.id, flow.version)
        if existing is not None:
            return existing
        return self.repository.create_version(
            {
                "flow_id": flow.id,
                "version": flow.version,
                "definition": FlowGraph.from_flow(flow).to_snapshot(),
            }
        )

    def _bump_version(self, flow: Flow) -> FlowVersion:
        self.db.refresh(flow)
        flow = self.repository.update_flow(flow, {"version": flow.version + 1})
        logger.debug(f"Flow {flow.id} is now at version {flow.version}")
        if flow.status == FlowStatus.ACTIVE.value:
            logger.info(
                f"Active flow {flow.id} edited to version {flow.version}; "
                f"executions keep running version {flow.active_version} until reactivated"
            )
        return self._snapshot(flow)
