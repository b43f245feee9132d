"""Campaign event log — append-only, one stream per campaign.

Learn: Every event an operator triggers for a campaign is INSERTed here and
never UPDATEd. Viewers that join late (or reload) read the stream to catch
up on what was already broadcast. Rows only disappear when the campaign is
deleted (ON DELETE CASCADE).
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from livecast.db.models import CampaignEventRow


class CampaignEventLog:
    """Append-only event log backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(self, campaign_id: int, event: dict) -> CampaignEventRow:
        """Append an event to a campaign's stream. Returns the created row."""
        row = CampaignEventRow(
            campaign_id=campaign_id,
            type=event["type"],
            payload=event,
        )
        self.db.add(row)
        await self.db.flush()  # get the auto-generated id
        return row

    async def read_recent(self, campaign_id: int, limit: int = 50) -> list[CampaignEventRow]:
        """Most recent events for a campaign, newest first."""
        result = await self.db.execute(
            select(CampaignEventRow)
            .where(CampaignEventRow.campaign_id == campaign_id)
            .order_by(CampaignEventRow.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
