"""
Sales API Endpoints.

Direct sales, voids and the sale payment ledger.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from api.deps import get_actor
from api.errors import http_error
from api.models import (
    CreateSaleRequest,
    PaymentLedgerResponse,
    PaymentResponse,
    PaymentSummaryResponse,
    RegisterPaymentRequest,
    SaleResponse,
    VoidResponse,
    VoidSaleRequest,
)
from domain.actor import Actor
from domain.errors import LifecycleError
from services.sale_service import (
    DirectSaleRequest,
    VoidRequest,
    create_direct_sale,
    get_payment_summary,
    list_sale_payments,
    list_vehicle_sales,
    register_payment,
    void_sale,
)

router = APIRouter()


@router.get(
    "/vehicles/{vehicle_id}/sales",
    response_model=List[SaleResponse],
    summary="List Vehicle Sales",
)
def get_vehicle_sales(vehicle_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        sales = list_vehicle_sales(vehicle_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return [SaleResponse.model_validate(s) for s in sales]


@router.post(
    "/sales",
    response_model=SaleResponse,
    status_code=201,
    summary="Create Direct Sale",
    description="Sell a vehicle without a reservation. A reserved vehicle must be sold by converting its reservation."
)
def post_sale(request: CreateSaleRequest, actor: Actor = Depends(get_actor)):
    try:
        sale = create_direct_sale(
            DirectSaleRequest(
                vehicle_id=request.vehicle_id,
                customer_id=request.customer_id,
                final_price_cop=request.final_price_cop,
                payment_method_code=request.payment_method_code,
                notes=request.notes,
            ),
            actor,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return SaleResponse.model_validate(sale)


@router.post(
    "/sales/{sale_id}/void",
    response_model=VoidResponse,
    summary="Void Sale",
    description="Void an active sale, return the vehicle to the chosen stage and optionally record a refund."
)
def post_void_sale(sale_id: UUID, request: VoidSaleRequest, actor: Actor = Depends(get_actor)):
    """
    Void a sale.

    **Example request:**
    ```json
    {
      "void_reason": "cliente desistió",
      "return_stage_code": "publicado",
      "refund_amount_cop": 5000000,
      "refund_method_code": "transferencia"
    }
    ```
    """
    try:
        result = void_sale(
            VoidRequest(
                sale_id=sale_id,
                void_reason=request.void_reason,
                return_stage_code=request.return_stage_code,
                refund_amount_cop=request.refund_amount_cop,
                refund_method_code=request.refund_method_code,
            ),
            actor,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return VoidResponse.model_validate(result)


@router.get(
    "/sales/{sale_id}/payments",
    response_model=PaymentLedgerResponse,
    summary="Sale Payment Ledger",
)
def get_sale_payments(sale_id: UUID, actor: Actor = Depends(get_actor)):
    try:
        payments = list_sale_payments(sale_id, actor)
        summary = get_payment_summary(sale_id, actor)
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return PaymentLedgerResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        summary=PaymentSummaryResponse.model_validate(summary),
    )


@router.post(
    "/sales/{sale_id}/payments",
    response_model=PaymentResponse,
    status_code=201,
    summary="Register Payment",
)
def post_sale_payment(
    sale_id: UUID,
    request: RegisterPaymentRequest,
    actor: Actor = Depends(get_actor),
):
    try:
        payment = register_payment(
            sale_id,
            request.amount_cop,
            request.direction,
            request.payment_method_code,
            actor,
            notes=request.notes,
        )
    except LifecycleError as exc:
        raise http_error(exc) from exc
    return PaymentResponse.model_validate(payment)
