"""Component API routes — the component library and campaign links.

Learn: Two groups of routes:
- /components: reusable definitions (banner, countdown, carousel, ...)
- /campaigns/{id}/components: which components a campaign uses, and
  whether each one is on screen right now

Turning a link ``active`` fails with 409 while the same component is active
in another campaign; the response names that campaign so the operator can
switch it off there first.
"""

from fastapi import APIRouter, Depends, HTTPException

from livecast.api.deps import component_service, conflict
from livecast.schemas.components import (
    ActiveComponentRead,
    CampaignComponentCreate,
    CampaignComponentRead,
    CampaignComponentUpdate,
    ComponentCreate,
    ComponentRead,
    ComponentUpdate,
    ComponentUsage,
)
from livecast.services.campaign_service import CampaignNotFoundError, InvalidScheduleError
from livecast.services.component_service import (
    ComponentConfigError,
    ComponentConflictError,
    ComponentNotFoundError,
    ComponentService,
    LinkNotFoundError,
)
from livecast.storage import LinkExistsError

router = APIRouter()


# ═══════════════════════════════════════════════════════════
# Component library
# ═══════════════════════════════════════════════════════════


@router.post("/components", response_model=ComponentRead, status_code=201)
async def create_component(body: ComponentCreate, svc: ComponentService = Depends(component_service)):
    """Define a component. ``config`` is checked against the component type."""
    try:
        return await svc.create_component(body.type, body.name, body.config)
    except ComponentConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/components", response_model=list[ComponentRead])
async def list_components(svc: ComponentService = Depends(component_service)):
    return await svc.list_components()


@router.get("/components/usage", response_model=list[ComponentUsage])
async def component_usage(svc: ComponentService = Depends(component_service)):
    """For each component: linked campaigns and the one where it is active."""
    return await svc.component_usage()


@router.get("/components/{component_id}", response_model=ComponentRead)
async def get_component(component_id: str, svc: ComponentService = Depends(component_service)):
    try:
        return await svc.get_component(component_id)
    except ComponentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.patch("/components/{component_id}", response_model=ComponentRead)
async def update_component(
    component_id: str,
    body: ComponentUpdate,
    svc: ComponentService = Depends(component_service),
):
    """Edit a component. Campaigns showing it receive the new config live."""
    try:
        return await svc.update_component(component_id, name=body.name, config=body.config)
    except ComponentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ComponentConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/components/{component_id}")
async def delete_component(component_id: str, svc: ComponentService = Depends(component_service)):
    """Delete a component and every link to it."""
    try:
        await svc.delete_component(component_id)
    except ComponentNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True}


# ═══════════════════════════════════════════════════════════
# Campaign links
# ═══════════════════════════════════════════════════════════


@router.get("/campaigns/{campaign_id}/components", response_model=list[CampaignComponentRead])
async def list_campaign_components(
    campaign_id: int,
    svc: ComponentService = Depends(component_service),
):
    try:
        return await svc.list_links(campaign_id)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(
    "/campaigns/{campaign_id}/components",
    response_model=CampaignComponentRead,
    status_code=201,
)
async def link_component(
    campaign_id: int,
    body: CampaignComponentCreate,
    svc: ComponentService = Depends(component_service),
):
    """Add a component to a campaign, optionally active or on a schedule."""
    try:
        return await svc.link_component(
            campaign_id,
            body.component_id,
            status=body.status,
            custom_config=body.custom_config,
            scheduled_time=body.scheduled_time,
            end_time=body.end_time,
        )
    except (CampaignNotFoundError, ComponentNotFoundError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ComponentConfigError, InvalidScheduleError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LinkExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ComponentConflictError as e:
        raise conflict(e)


@router.patch(
    "/campaigns/{campaign_id}/components/{component_id}",
    response_model=CampaignComponentRead,
)
async def update_campaign_component(
    campaign_id: int,
    component_id: str,
    body: CampaignComponentUpdate,
    svc: ComponentService = Depends(component_service),
):
    """Toggle a link, override its config, or (re)schedule it.

    Status changes are pushed to the campaign's viewers immediately.
    """
    try:
        return await svc.update_link(
            campaign_id, component_id, body.model_dump(exclude_unset=True)
        )
    except LinkNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (ComponentConfigError, InvalidScheduleError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ComponentConflictError as e:
        raise conflict(e)


@router.delete("/campaigns/{campaign_id}/components/{component_id}")
async def unlink_component(
    campaign_id: int,
    component_id: str,
    svc: ComponentService = Depends(component_service),
):
    """Remove a component from a campaign (viewers are told if it was showing)."""
    try:
        await svc.unlink_component(campaign_id, component_id)
    except LinkNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"deleted": True}


@router.get(
    "/campaigns/{campaign_id}/active-components",
    response_model=list[ActiveComponentRead],
)
async def active_components(
    campaign_id: int,
    svc: ComponentService = Depends(component_service),
):
    """What a viewer joining now should render."""
    try:
        return await svc.active_components(campaign_id)
    except CampaignNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
