"""
Reservations API Endpoints.

Create, cancel, expire and convert deposit-backed holds on vehicles.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from api.deps import get_actor
from api.errors import http_error
from api.models import (
    CancelReservationRequest,
    ConversionResponse,
    ConvertReservationRequest,
    CreateReservationRequest,
    ExpireReservationRequest,
    ReleaseResponse,
    ReservationResponse,
)
from domain.actor import Actor
from domain.errors import LifecycleError
from domain.stage import STAGE_PUBLISHED
from services.reservation_service import (
    ConversionRequest,
    ReservationRequest,
    cancel_reservation,
    convert_to_sale,
    create_reservation,
    expire_reservation,
    list_vehicle_reservations,
)

router = APIRouter()


@router.get(
    "/vehicles/{vehicle_id}/reservations",
    response_model=List[ReservationResponse],
    summary="List Vehicle Reservations",
)
def get_vehicle_reservations(vehicle_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        reservations = list_vehicle_reservations(vehicle_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return [ReservationResponse.model_validate(r) for r in reservations]


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=201,
    summary="Create Reservation",
    description="Reserve a vehicle with a deposit. The vehicle moves to 'bloqueado'."
)
def post_reservation(request: CreateReservationRequest, actor: Actor = Depends(get_actor)):
    """
    Create an active reservation.

    **Rejected with 409 when:**
    - the vehicle already has an active reservation (`vehicle_already_reserved`)
    - the vehicle is sold (`vehicle_already_sold`) or archived (`vehicle_archived`)
    """
    try:
        reservation = create_reservation(
            ReservationRequest(
                vehicle_id=request.vehicle_id,
                customer_id=request.customer_id,
                deposit_amount_cop=request.deposit_amount_cop,
                payment_method_code=request.payment_method_code,
                notes=request.notes,
            ),
            actor,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return ReservationResponse.model_validate(reservation)


@router.post(
    "/reservations/{reservation_id}/cancel",
    response_model=ReleaseResponse,
    summary="Cancel Reservation",
    description="Cancel an active reservation and release the vehicle unless another reservation holds it."
)
def post_cancel_reservation(
    reservation_id: UUID,
    request: Optional[CancelReservationRequest] = None,
    actor: Actor = Depends(get_actor),
):
    request = request or CancelReservationRequest()
    try:
        result = cancel_reservation(
            reservation_id,
            actor,
            request.reason,
            release_stage=request.release_stage or STAGE_PUBLISHED,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return ReleaseResponse.model_validate(result)


@router.post(
    "/reservations/{reservation_id}/expire",
    response_model=ReleaseResponse,
    summary="Expire Reservation",
)
def post_expire_reservation(
    reservation_id: UUID,
    request: Optional[ExpireReservationRequest] = None,
    actor: Actor = Depends(get_actor),
):
    request = request or ExpireReservationRequest()
    try:
        result = expire_reservation(
            reservation_id,
            actor,
            release_stage=request.release_stage or STAGE_PUBLISHED,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return ReleaseResponse.model_validate(result)


@router.post(
    "/reservations/{reservation_id}/convert",
    response_model=ConversionResponse,
    status_code=201,
    summary="Convert Reservation to Sale",
    description="Create the sale, optionally register the deposit as a payment, mark the vehicle sold."
)
def post_convert_reservation(
    reservation_id: UUID,
    request: ConvertReservationRequest,
    actor: Actor = Depends(get_actor),
):
    """
    Convert an active reservation into a sale.

    All steps run in one database transaction: either the sale, the deposit
    payment, the vehicle stage and the reservation status all change, or none do.
    """
    try:
        result = convert_to_sale(
            ConversionRequest(
                reservation_id=reservation_id,
                final_price_cop=request.final_price_cop,
                payment_method_code=request.payment_method_code,
                register_deposit_as_payment=request.register_deposit_as_payment,
                notes=request.notes,
            ),
            actor,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return ConversionResponse.model_validate(result)
