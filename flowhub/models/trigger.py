"""Trigger subscription and trigger event models."""

from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Column, ForeignKey, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from flowhub.core.db.session import Base
from flowhub.core.db.types import UTCDateTime, utcnow


class SubscriptionStatus(str, Enum):
    """Trigger subscription status."""

    ACTIVE = "active"
    PAUSED = "paused"


class TriggerEventStatus(str, Enum):
    """Trigger event status."""

    PENDING = "pending"
    DISPATCHED = "dispatched"
    IGNORED = "ignored"


class TriggerSubscription(Base):
    """Binding of a flow to a live (connector, trigger, connection) instance."""

    __tablename__ = "integration_trigger_subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    flow_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_flows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    connector_name = Column(String(100), nullable=False)
    trigger_name = Column(String(100), nullable=False)
    connection_id = Column(String(100), nullable=True)
    config = Column(JSON, nullable=True)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    webhook_id = Column(String(255), nullable=True)
    webhook_secret = Column(String(64), nullable=True)
    webhook_registered_at = Column(UTCDateTime(), nullable=True)
    polling_state = Column(JSON, nullable=True)  # Opaque cursor owned by the trigger
    last_polled_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime(), default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    flow = relationship("Flow", back_populates="subscriptions")
    events = relationship(
        "TriggerEvent", back_populates="subscription", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_trigger_subscriptions_connector_status", "connector_name", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<TriggerSubscription(id={self.id}, trigger={self.connector_name}.{self.trigger_name}, "
            f"status={self.status})>"
        )


class TriggerEvent(Base):
    """One ingested occurrence of a trigger."""

    __tablename__ = "integration_trigger_events"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    subscription_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("integration_trigger_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
    )
    flow_id = Column(Uuid(as_uuid=True), nullable=False)
    data = Column(JSON, nullable=False)
    deduplication_key = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=TriggerEventStatus.PENDING.value)
    processed_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), default=utcnow, nullable=False, index=True)

    subscription = relationship("TriggerSubscription", back_populates="events")

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "deduplication_key", name="uq_trigger_events_subscription_dedup"
        ),
        Index("idx_trigger_events_flow_status", "flow_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<TriggerEvent(id={self.id}, key={self.deduplication_key}, status={self.status})>"
