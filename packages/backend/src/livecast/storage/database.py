"""PostgreSQL storage backend (async SQLAlchemy + asyncpg).

Learn: Each method is one unit of work with its own session, the same way
the background workers open ``async_session_factory()`` per job. That lets
the scheduler (no request) and the API (per request) share one backend.

Component activation is a compare-and-swap: the conflict pre-check gives a
readable error, and the partial unique index on active links turns a lost
race into an IntegrityError, reported as the same ComponentConflictError.
"""

from datetime import datetime
from typing import Any, Optional

import structlog
from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.clock import ensure_utc, utcnow
from livecast.db.engine import build_engine, build_session_factory
from livecast.db.models import (
    Base,
    CampaignComponentRow,
    CampaignRow,
    ComponentRow,
    ScheduledComponentRow,
)
from livecast.events.store import CampaignEventLog
from livecast.storage.base import (
    LINK_ACTIVE,
    LINK_INACTIVE,
    Campaign,
    CampaignComponent,
    Component,
    ComponentConflictError,
    LinkExistsError,
    ScheduledComponent,
    Storage,
    StoredEvent,
    new_component_id,
)

logger = structlog.get_logger()

_CAMPAIGN_FIELDS = (
    "name",
    "logo",
    "description",
    "start_date",
    "end_date",
    "reachu_channel_id",
    "reachu_api_key",
    "tipio_liveshow_id",
)
_LINK_FIELDS = ("custom_config", "scheduled_time", "end_time")
_DATE_FIELDS = {"start_date", "end_date", "scheduled_time", "end_time"}


# ─── Row → record conversion ────────────────────────────


def _campaign(row: CampaignRow) -> Campaign:
    return Campaign(
        id=row.id,
        name=row.name,
        logo=row.logo,
        description=row.description,
        start_date=row.start_date,
        end_date=row.end_date,
        reachu_channel_id=row.reachu_channel_id,
        reachu_api_key=row.reachu_api_key,
        tipio_liveshow_id=row.tipio_liveshow_id,
        created_at=row.created_at,
    )


def _component(row: ComponentRow) -> Component:
    return Component(
        id=row.id,
        type=row.type,
        name=row.name,
        config=dict(row.config or {}),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _link(row: CampaignComponentRow) -> CampaignComponent:
    return CampaignComponent(
        id=row.id,
        campaign_id=row.campaign_id,
        component_id=row.component_id,
        component=_component(row.component),
        status=row.status,
        custom_config=row.custom_config,
        scheduled_time=row.scheduled_time,
        end_time=row.end_time,
        activated_at=row.activated_at,
        updated_at=row.updated_at,
    )


def _scheduled(row: ScheduledComponentRow) -> ScheduledComponent:
    return ScheduledComponent(
        id=row.id,
        campaign_id=row.campaign_id,
        type=row.type,
        scheduled_time=row.scheduled_time,
        end_time=row.end_time,
        data=dict(row.data or {}),
        status=row.status,
        created_at=row.created_at,
    )


def _apply(row: Any, changes: dict, allowed: tuple[str, ...]) -> None:
    for key, value in changes.items():
        if key in allowed:
            setattr(row, key, ensure_utc(value) if key in _DATE_FIELDS else value)


class DatabaseStorage(Storage):
    """``Storage`` implementation on PostgreSQL."""

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = build_engine(database_url, echo=echo)
        self.session_factory = build_session_factory(self.engine)

    async def init(self) -> None:
        # Schema migrations are out of scope; create what is missing.
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("storage.database_ready")

    async def close(self) -> None:
        await self.engine.dispose()

    async def ping(self) -> bool:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    # ─── Campaigns ──────────────────────────────────────

    async def create_campaign(self, name: str, **fields: Any) -> Campaign:
        async with self.session_factory() as db:
            row = CampaignRow(name=name)
            _apply(row, fields, _CAMPAIGN_FIELDS)
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return _campaign(row)

    async def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        async with self.session_factory() as db:
            row = await db.get(CampaignRow, campaign_id)
            return _campaign(row) if row else None

    async def list_campaigns(self) -> list[Campaign]:
        async with self.session_factory() as db:
            result = await db.execute(select(CampaignRow).order_by(CampaignRow.id))
            return [_campaign(r) for r in result.scalars().all()]

    async def update_campaign(self, campaign_id: int, changes: dict) -> Optional[Campaign]:
        async with self.session_factory() as db:
            row = await db.get(CampaignRow, campaign_id)
            if row is None:
                return None
            _apply(row, changes, _CAMPAIGN_FIELDS)
            await db.commit()
            return _campaign(row)

    async def delete_campaign(self, campaign_id: int) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(CampaignRow).where(CampaignRow.id == campaign_id))
            await db.commit()
            return result.rowcount > 0

    # ─── Event log ──────────────────────────────────────

    async def append_event(self, campaign_id: int, event: dict) -> StoredEvent:
        async with self.session_factory() as db:
            row = await CampaignEventLog(db).append(campaign_id, event)
            await db.commit()
            return StoredEvent(
                id=row.id,
                campaign_id=row.campaign_id,
                type=row.type,
                payload=row.payload,
                created_at=row.created_at or utcnow(),
            )

    async def list_events(self, campaign_id: int, limit: int = 50) -> list[dict]:
        async with self.session_factory() as db:
            rows = await CampaignEventLog(db).read_recent(campaign_id, limit=limit)
            return [dict(r.payload) for r in rows]

    # ─── Components ─────────────────────────────────────

    async def create_component(self, type: str, name: str, config: dict) -> Component:
        async with self.session_factory() as db:
            row = ComponentRow(id=new_component_id(), type=type, name=name, config=config)
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return _component(row)

    async def get_component(self, component_id: str) -> Optional[Component]:
        async with self.session_factory() as db:
            row = await db.get(ComponentRow, component_id)
            return _component(row) if row else None

    async def list_components(self) -> list[Component]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ComponentRow).order_by(ComponentRow.created_at.desc())
            )
            return [_component(r) for r in result.scalars().all()]

    async def update_component(self, component_id: str, changes: dict) -> Optional[Component]:
        async with self.session_factory() as db:
            row = await db.get(ComponentRow, component_id)
            if row is None:
                return None
            _apply(row, changes, ("name", "config"))
            row.updated_at = utcnow()
            await db.commit()
            return _component(row)

    async def delete_component(self, component_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(delete(ComponentRow).where(ComponentRow.id == component_id))
            await db.commit()
            return result.rowcount > 0

    # ─── Links ──────────────────────────────────────────

    async def _link_row(
        self, db: AsyncSession, campaign_id: int, component_id: str
    ) -> Optional[CampaignComponentRow]:
        result = await db.execute(
            select(CampaignComponentRow).where(
                CampaignComponentRow.campaign_id == campaign_id,
                CampaignComponentRow.component_id == component_id,
            )
        )
        return result.scalars().first()

    async def _holder(
        self, db: AsyncSession, component_id: str, exclude_campaign_id: Optional[int]
    ) -> Optional[int]:
        q = select(CampaignComponentRow.campaign_id).where(
            CampaignComponentRow.component_id == component_id,
            CampaignComponentRow.status == LINK_ACTIVE,
        )
        if exclude_campaign_id is not None:
            q = q.where(CampaignComponentRow.campaign_id != exclude_campaign_id)
        result = await db.execute(q.limit(1))
        return result.scalars().first()

    async def _commit_activation(
        self, db: AsyncSession, component_id: str, campaign_id: int
    ) -> None:
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            holder = await self._holder(db, component_id, campaign_id)
            logger.warning(
                "storage.activation_race_lost",
                component_id=component_id,
                campaign_id=campaign_id,
                holder_campaign_id=holder,
            )
            if holder is None:
                raise
            raise ComponentConflictError(component_id, holder) from e

    async def link_component(
        self,
        campaign_id: int,
        component_id: str,
        status: str = LINK_INACTIVE,
        custom_config: Optional[dict] = None,
        scheduled_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> CampaignComponent:
        async with self.session_factory() as db:
            if await self._link_row(db, campaign_id, component_id) is not None:
                raise LinkExistsError(
                    f"Component {component_id} is already linked to campaign {campaign_id}"
                )
            if status == LINK_ACTIVE:
                holder = await self._holder(db, component_id, campaign_id)
                if holder is not None:
                    raise ComponentConflictError(component_id, holder)
            now = utcnow()
            row = CampaignComponentRow(
                campaign_id=campaign_id,
                component_id=component_id,
                status=status,
                custom_config=custom_config,
                scheduled_time=ensure_utc(scheduled_time),
                end_time=ensure_utc(end_time),
                activated_at=now if status == LINK_ACTIVE else None,
                updated_at=now,
            )
            db.add(row)
            await self._commit_activation(db, component_id, campaign_id)
            row = await self._link_row(db, campaign_id, component_id)
            return _link(row)

    async def get_campaign_component(
        self, campaign_id: int, component_id: str
    ) -> Optional[CampaignComponent]:
        async with self.session_factory() as db:
            row = await self._link_row(db, campaign_id, component_id)
            return _link(row) if row else None

    async def list_campaign_components(self, campaign_id: int) -> list[CampaignComponent]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CampaignComponentRow)
                .where(CampaignComponentRow.campaign_id == campaign_id)
                .order_by(CampaignComponentRow.id)
            )
            return [_link(r) for r in result.scalars().all()]

    async def list_component_links(self, component_id: str) -> list[CampaignComponent]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(CampaignComponentRow)
                .where(CampaignComponentRow.component_id == component_id)
                .order_by(CampaignComponentRow.id)
            )
            return [_link(r) for r in result.scalars().all()]

    async def update_campaign_component(
        self, campaign_id: int, component_id: str, changes: dict
    ) -> Optional[CampaignComponent]:
        async with self.session_factory() as db:
            row = await self._link_row(db, campaign_id, component_id)
            if row is None:
                return None
            _apply(row, changes, _LINK_FIELDS)
            row.updated_at = utcnow()
            await db.commit()
            return _link(row)

    async def set_campaign_component_status(
        self, campaign_id: int, component_id: str, status: str
    ) -> Optional[CampaignComponent]:
        async with self.session_factory() as db:
            row = await self._link_row(db, campaign_id, component_id)
            if row is None:
                return None
            now = utcnow()
            if status == LINK_ACTIVE:
                holder = await self._holder(db, component_id, campaign_id)
                if holder is not None:
                    raise ComponentConflictError(component_id, holder)
                row.activated_at = now
            row.status = status
            row.updated_at = now
            await self._commit_activation(db, component_id, campaign_id)
            return _link(row)

    async def find_active_holder(
        self, component_id: str, exclude_campaign_id: Optional[int] = None
    ) -> Optional[int]:
        async with self.session_factory() as db:
            return await self._holder(db, component_id, exclude_campaign_id)

    async def unlink_component(self, campaign_id: int, component_id: str) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                delete(CampaignComponentRow).where(
                    CampaignComponentRow.campaign_id == campaign_id,
                    CampaignComponentRow.component_id == component_id,
                )
            )
            await db.commit()
            return result.rowcount > 0

    # ─── Scheduled components ───────────────────────────

    async def create_scheduled_component(
        self,
        campaign_id: int,
        type: str,
        scheduled_time: datetime,
        end_time: Optional[datetime] = None,
        data: Optional[dict] = None,
    ) -> ScheduledComponent:
        async with self.session_factory() as db:
            row = ScheduledComponentRow(
                campaign_id=campaign_id,
                type=type,
                scheduled_time=ensure_utc(scheduled_time),
                end_time=ensure_utc(end_time),
                data=data or {},
                status="pending",
            )
            db.add(row)
            await db.commit()
            await db.refresh(row)
            return _scheduled(row)

    async def list_scheduled_components(self, campaign_id: int) -> list[ScheduledComponent]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(ScheduledComponentRow)
                .where(ScheduledComponentRow.campaign_id == campaign_id)
                .order_by(ScheduledComponentRow.scheduled_time)
            )
            return [_scheduled(r) for r in result.scalars().all()]

    async def get_scheduled_component(self, scheduled_id: int) -> Optional[ScheduledComponent]:
        async with self.session_factory() as db:
            row = await db.get(ScheduledComponentRow, scheduled_id)
            return _scheduled(row) if row else None

    async def set_scheduled_component_status(
        self, scheduled_id: int, status: str
    ) -> Optional[ScheduledComponent]:
        async with self.session_factory() as db:
            row = await db.get(ScheduledComponentRow, scheduled_id)
            if row is None:
                return None
            row.status = status
            await db.commit()
            return _scheduled(row)

    async def delete_scheduled_component(self, scheduled_id: int) -> bool:
        async with self.session_factory() as db:
            result = await db.execute(
                delete(ScheduledComponentRow).where(ScheduledComponentRow.id == scheduled_id)
            )
            await db.commit()
            return result.rowcount > 0
