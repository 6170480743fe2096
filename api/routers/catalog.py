"""
Catalog API Endpoints.

Lookup lists for the stage board and the reservation/sale forms.
"""

from typing import List

from fastapi import APIRouter

from api.errors import http_error
from api.models import PaymentMethodResponse, StageResponse
from domain.errors import LifecycleError
from services.catalog_service import list_active_payment_methods
from services.stage_service import list_stages

router = APIRouter()


@router.get("/catalog/stages", response_model=List[StageResponse], summary="List Vehicle Stages")
def get_stages():
    try:
        stages = list_stages()
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return [StageResponse.model_validate(s) for s in stages]


@router.get(
    "/catalog/payment-methods",
    response_model=List[PaymentMethodResponse],
    summary="List Active Payment Methods",
)
def get_payment_methods():
    try:
        methods = list_active_payment_methods()
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return [PaymentMethodResponse.model_validate(m) for m in methods]
