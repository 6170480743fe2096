"""
Vehicles API Endpoints.

Vehicle detail, stage history, consistency report and manual stage changes.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from api.deps import get_actor
from api.errors import http_error
from api.models import (
    ConsistencyResponse,
    StageChangeRequest,
    StageTransitionResponse,
    VehicleResponse,
)
from domain.actor import Actor
from domain.errors import LifecycleError
from services.stage_service import (
    change_stage_manually,
    check_vehicle_consistency,
    get_stage_history,
    require_vehicle,
)

router = APIRouter()


@router.get(
    "/vehicles/{vehicle_id}",
    response_model=VehicleResponse,
    summary="Get Vehicle",
)
def get_vehicle(vehicle_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        vehicle = require_vehicle(vehicle_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return VehicleResponse.model_validate(vehicle)


@router.get(
    "/vehicles/{vehicle_id}/history",
    response_model=List[StageTransitionResponse],
    summary="Vehicle Stage History",
    description="Recorded stage moves of a vehicle, newest first."
)
def get_vehicle_history(vehicle_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        history = get_stage_history(vehicle_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return [StageTransitionResponse.model_validate(t) for t in history]


@router.get(
    "/vehicles/{vehicle_id}/consistency",
    response_model=ConsistencyResponse,
    summary="Check Vehicle Consistency",
    description="Compare the vehicle stage with its active reservations and sales. Read-only."
)
def get_vehicle_consistency(vehicle_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        report = check_vehicle_consistency(vehicle_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return ConsistencyResponse.model_validate(report)


@router.post(
    "/vehicles/{vehicle_id}/stage",
    response_model=StageTransitionResponse,
    summary="Change Vehicle Stage",
    description="Manual stage change. Rejected (409 stage_locked) while a reservation or sale is active, or when targeting 'vendido'."
)
def post_vehicle_stage(
    vehicle_id: UUID,
    request: StageChangeRequest,
    actor: Actor = Depends(get_actor),
):
    """
    Move a vehicle to another stage by hand.

    Moving to the stage the vehicle is already in is a no-op.
    """
    try:
        transition = change_stage_manually(vehicle_id, request.target_stage, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return StageTransitionResponse.model_validate(transition)
