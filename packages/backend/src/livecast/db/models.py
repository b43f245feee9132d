"""SQLAlchemy ORM models — the PostgreSQL schema behind DatabaseStorage.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table. Deleting a campaign cascades to its events, links
and scheduled components through ON DELETE CASCADE foreign keys.

Key constraints:
- campaign_events is append-only; rows are never updated.
- campaign_components has a partial unique index on component_id WHERE
  status = 'active', so the database itself guarantees a component is active
  in at most one campaign.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from livecast.clock import utcnow


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class CampaignRow(Base):
    """A campaign — the tenant boundary for events and components."""

    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    logo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reachu_channel_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    reachu_api_key: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    tipio_liveshow_id: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class CampaignEventRow(Base):
    """One broadcast event, appended per campaign.

    Learn: BIGSERIAL id gives a global ordering; list_events reads
    newest-first by id.
    """

    __tablename__ = "campaign_events"
    __table_args__ = (
        Index("idx_campaign_events_campaign", "campaign_id", "id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # product, poll, contest
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class ComponentRow(Base):
    """A reusable UI component definition."""

    __tablename__ = "components"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    type: Mapped[str] = mapped_column(String(40), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    config: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )


class CampaignComponentRow(Base):
    """Link granting a component presence in one campaign."""

    __tablename__ = "campaign_components"
    __table_args__ = (
        UniqueConstraint("campaign_id", "component_id", name="uq_campaign_components"),
        Index(
            "uq_campaign_components_one_active",
            "component_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
        ),
        Index("idx_campaign_components_scheduled", "campaign_id", "scheduled_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    component_id: Mapped[str] = mapped_column(
        String(40), ForeignKey("components.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="inactive"
    )  # active, inactive
    custom_config: Mapped[Optional[dict]] = mapped_column(JSONB, nullable=True)
    scheduled_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    activated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=utcnow
    )

    component: Mapped["ComponentRow"] = relationship(lazy="joined")


class ScheduledComponentRow(Base):
    """Legacy one-shot timed content; status is moved by operators."""

    __tablename__ = "scheduled_components"
    __table_args__ = (
        Index("idx_scheduled_components_campaign", "campaign_id", "scheduled_time"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    campaign_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    scheduled_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    data: Mapped[dict] = mapped_column(JSONB, nullable=False, server_default="{}")
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="pending"
    )  # pending, sent, cancelled
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
