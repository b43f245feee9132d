"""Builders for the component control messages sent to viewers."""

from livecast.events.types import COMPONENT_CONFIG_UPDATED, COMPONENT_STATUS_CHANGED
from livecast.schemas.components import ComponentSnapshot
from livecast.storage.base import CampaignComponent
from livecast.urls import normalize_urls


def component_snapshot(link: CampaignComponent, base_url: str) -> dict:
    """The component as a viewer should render it in this campaign."""
    return ComponentSnapshot(
        id=link.component.id,
        type=link.component.type,
        name=link.component.name,
        config=normalize_urls(link.effective_config(), base_url),
    ).model_dump()


def component_status_changed(link: CampaignComponent, status: str, base_url: str) -> dict:
    return {
        "type": COMPONENT_STATUS_CHANGED,
        "campaignId": link.campaign_id,
        "componentId": link.component_id,
        "status": status,
        "component": component_snapshot(link, base_url),
    }


def component_config_updated(link: CampaignComponent, base_url: str) -> dict:
    return {
        "type": COMPONENT_CONFIG_UPDATED,
        "campaignId": link.campaign_id,
        "componentId": link.component_id,
        "component": component_snapshot(link, base_url),
    }
