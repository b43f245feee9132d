"""Campaign API routes — campaigns and their scheduled components.

Learn: Routes translate HTTP to CampaignService calls and map its
exceptions to status codes. PATCH bodies are applied with
``exclude_unset`` so a field that was not sent is left alone while an
explicit null clears it.
"""

from fastapi import APIRouter, Depends, HTTPException

from livecast.api.deps import campaign_service
from livecast.schemas.campaign import (
    CampaignCreate,
    CampaignRead,
    CampaignUpdate,
    ScheduledComponentCreate,
    ScheduledComponentRead,
    ScheduledComponentStatusUpdate,
)
from livecast.services.campaign_service import (
    CampaignNotFoundError,
    CampaignService,
    InvalidScheduledTransitionError,
    InvalidScheduleError,
    ScheduledComponentNotFoundError,
)
from livecast.storage import Campaign

router = APIRouter()


def _read(campaign: Campaign) -> CampaignRead:
    # from_attributes picks up the computed is_active property
    return CampaignRead.model_validate(campaign)


# ═══════════════════════════════════════════════════════════
# Campaigns
# ═══════════════════════════════════════════════════════════


@router.post("/campaigns", response_model=CampaignRead, status_code=201)
async def create_campaign(body: CampaignCreate, svc: CampaignService = Depends(campaign_service)):
    """Create a campaign. Viewers join it at /ws/{id}."""
    fields = body.model_dump(exclude={"name"}, exclude_none=True)
    return _read(await svc.create_campaign(body.name, **fields))


@router.get("/campaigns", response_model=list[CampaignRead])
async def list_campaigns(svc: CampaignService = Depends(campaign_service)):
    return [_read(c) for c in await svc.list_campaigns()]


@router.get("/campaigns/{campaign_id}", response_model=CampaignRead)
async def get_campaign(campaign_id: int, svc: CampaignService = Depends(campaign_service)):
    try:
        return _read(await svc.get_campaign(campaign_id))
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/campaigns/{campaign_id}", response_model=CampaignRead)
async def update_campaign(
    campaign_id: int,
    body: CampaignUpdate,
    svc: CampaignService = Depends(campaign_service),
):
    """Partially update a campaign. Setting endDate in the past ends it."""
    try:
        campaign = await svc.update_campaign(campaign_id, body.model_dump(exclude_unset=True))
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _read(campaign)


@router.delete("/campaigns/{campaign_id}")
async def delete_campaign(campaign_id: int, svc: CampaignService = Depends(campaign_service)):
    """Delete a campaign with its events, links and scheduled components."""
    try:
        await svc.delete_campaign(campaign_id)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True}


# ═══════════════════════════════════════════════════════════
# Scheduled components
# ═══════════════════════════════════════════════════════════


@router.post(
    "/campaigns/{campaign_id}/scheduled-components",
    response_model=ScheduledComponentRead,
    status_code=201,
)
async def create_scheduled_component(
    campaign_id: int,
    body: ScheduledComponentCreate,
    svc: CampaignService = Depends(campaign_service),
):
    """Queue a one-shot item for a campaign. Starts ``pending``."""
    try:
        return await svc.schedule_component(
            campaign_id,
            type=body.type,
            scheduled_time=body.scheduled_time,
            end_time=body.end_time,
            data=body.data,
        )
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidScheduleError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/campaigns/{campaign_id}/scheduled-components",
    response_model=list[ScheduledComponentRead],
)
async def list_scheduled_components(
    campaign_id: int,
    svc: CampaignService = Depends(campaign_service),
):
    try:
        return await svc.list_scheduled_components(campaign_id)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/scheduled-components/{scheduled_id}", response_model=ScheduledComponentRead)
async def update_scheduled_component(
    scheduled_id: int,
    body: ScheduledComponentStatusUpdate,
    svc: CampaignService = Depends(campaign_service),
):
    """Mark a scheduled item sent or cancelled."""
    try:
        return await svc.set_scheduled_status(scheduled_id, body.status)
    except ScheduledComponentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidScheduledTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.delete("/scheduled-components/{scheduled_id}")
async def delete_scheduled_component(
    scheduled_id: int,
    svc: CampaignService = Depends(campaign_service),
):
    try:
        await svc.delete_scheduled_component(scheduled_id)
    except ScheduledComponentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True}
