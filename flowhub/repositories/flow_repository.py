"""Flow repository for data access operations."""

from uuid import UUID

from sqlalchemy.orm import Session

from flowhub.models.flow import Flow, FlowEdge, FlowNode, FlowVersion


class FlowRepository:
    """Repository for flow, node, edge and version data access."""

    def __init__(self, db: Session):
        """Initialize repository with database session."""
        self.db = db

    # Flow operations
    def create_flow(self, flow_data: dict) -> Flow:
        """Create a new flow."""
        flow = Flow(**flow_data)
        self.db.add(flow)
        self.db.commit()
        self.db.refresh(flow)
        return flow

    def get_flow_by_id(self, flow_id: UUID, tenant_id: UUID | None = None) -> Flow | None:
        """Get flow by ID, optionally scoped to a tenant."""
        query = self.db.query(Flow).filter(Flow.id == flow_id)
        if tenant_id is not None:
            query = query.filter(Flow.tenant_id == tenant_id)
        return query.first()

    def get_flow_by_slug(self, slug: str) -> Flow | None:
        """Get flow by slug."""
        return self.db.query(Flow).filter(Flow.slug == slug).first()

    def list_flows(
        self,
        tenant_id: UUID | None = None,
        status: str | None = None,
        search: str | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Flow]:
        """List flows with optional filters."""
        query = self.db.query(Flow)
        if tenant_id is not None:
            query = query.filter(Flow.tenant_id == tenant_id)
        if status:
            query = query.filter(Flow.status == status)
        if search:
            pattern = f"%{search}%"
            query = query.filter(Flow.name.ilike(pattern) | Flow.slug.ilike(pattern))
        return query.order_by(Flow.created_at.desc()).offset(skip).limit(limit).all()

    def update_flow(self, flow: Flow, flow_data: dict) -> Flow:
        """Update a flow."""
        for key, value in flow_data.items():
            setattr(flow, key, value)
        self.db.commit()
        self.db.refresh(flow)
        return flow

    def delete_flow(self, flow: Flow) -> None:
        """Delete a flow and everything it owns."""
        self.db.delete(flow)
        self.db.commit()

    # Node operations
    def create_node(self, node_data: dict, commit: bool = True) -> FlowNode:
        """Create a new node."""
        node = FlowNode(**node_data)
        self.db.add(node)
        if commit:
            self.db.commit()
            self.db.refresh(node)
        return node

    def get_node(self, flow_id: UUID, node_id: str) -> FlowNode | None:
        """Get node by flow-local node ID."""
        return (
            self.db.query(FlowNode)
            .filter(FlowNode.flow_id == flow_id, FlowNode.node_id == node_id)
            .first()
        )

    def delete_node(self, node: FlowNode) -> None:
        """Delete a node together with the edges touching it."""
        (
            self.db.query(FlowEdge)
            .filter(
                FlowEdge.flow_id == node.flow_id,
                (FlowEdge.source_node == node.node_id) | (FlowEdge.target_node == node.node_id),
            )
            .delete(synchronize_session="fetch")
        )
        self.db.delete(node)
        self.db.commit()

    # Edge operations
    def create_edge(self, edge_data: dict, commit: bool = True) -> FlowEdge:
        """Create a new edge."""
        edge = FlowEdge(**edge_data)
        self.db.add(edge)
        if commit:
            self.db.commit()
            self.db.refresh(edge)
        return edge

    def get_edge_by_id(self, edge_id: UUID) -> FlowEdge | None:
        """Get edge by ID."""
        return self.db.query(FlowEdge).filter(FlowEdge.id == edge_id).first()

    def delete_edge(self, edge: FlowEdge) -> None:
        """Delete an edge."""
        self.db.delete(edge)
        self.db.commit()

    # FlowVersion operations
    def create_version(self, version_data: dict) -> FlowVersion:
        """Create a new flow version snapshot."""
        version = FlowVersion(**version_data)
        self.db.add(version)
        self.db.commit()
        self.db.refresh(version)
        return version

    def get_version(self, flow_id: UUID, version: int) -> FlowVersion | None:
        """Get the snapshot for a specific flow version."""
        return (
            self.db.query(FlowVersion)
            .filter(FlowVersion.flow_id == flow_id, FlowVersion.version == version)
            .first()
        )

    def get_versions(self, flow_id: UUID) -> list[FlowVersion]:
        """Get all versions for a flow, newest first."""
        return (
            self.db.query(FlowVersion)
            .filter(FlowVersion.flow_id == flow_id)
            .order_by(FlowVersion.version.desc())
            .all()
        )
