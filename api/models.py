"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
Amounts are whole Colombian pesos (COP).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.reservation import ReservationStatus
from domain.sale import PaymentDirection, SaleStatus


# ============================================================================
# Vehicle Models
# ============================================================================

class VehicleResponse(BaseModel):
    """Single vehicle with its current stage."""
    vehicle_id: UUID
    org_id: UUID
    stage_code: str
    brand: Optional[str] = None
    line: Optional[str] = None
    model_year: Optional[int] = None
    license_plate: Optional[str] = None
    is_archived: bool = False
    sold_sale_id: Optional[UUID] = None
    sold_at: Optional[datetime] = None
    display_name: str

    class Config:
        from_attributes = True
        protected_namespaces = ()
        json_schema_extra = {
            "example": {
                "vehicle_id": "123e4567-e89b-12d3-a456-426614174000",
                "org_id": "123e4567-e89b-12d3-a456-426614174100",
                "stage_code": "publicado",
                "brand": "Mazda",
                "line": "CX-30",
                "model_year": 2022,
                "license_plate": "ABC123",
                "is_archived": False,
                "sold_sale_id": None,
                "sold_at": None,
                "display_name": "Mazda CX-30 2022 (ABC123)"
            }
        }


class StageChangeRequest(BaseModel):
    """Manual stage change from the board."""
    target_stage: str = Field(..., description="Stage code to move the vehicle to")

    class Config:
        json_schema_extra = {"example": {"target_stage": "publicado"}}


class StageTransitionResponse(BaseModel):
    """One recorded stage move."""
    vehicle_id: UUID
    from_stage: Optional[str] = None
    to_stage: str
    changed_at: datetime
    changed_by: Optional[UUID] = None
    note: Optional[str] = None

    class Config:
        from_attributes = True


class ConsistencyResponse(BaseModel):
    """Agreement between the stage and the active reservation/sale records."""
    vehicle_id: UUID
    stage_code: str
    active_reservation_ids: List[UUID]
    active_sale_ids: List[UUID]
    issues: List[str]
    is_consistent: bool

    class Config:
        from_attributes = True


# ============================================================================
# Catalog Models
# ============================================================================

class StageResponse(BaseModel):
    code: str
    name: str
    sort_order: int
    is_terminal: bool

    class Config:
        from_attributes = True


class PaymentMethodResponse(BaseModel):
    code: str
    name: str
    is_active: bool

    class Config:
        from_attributes = True


# ============================================================================
# Reservation Models
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Request to reserve a vehicle for a customer."""
    vehicle_id: UUID
    customer_id: UUID
    deposit_amount_cop: int = Field(..., description="Deposit in whole pesos, greater than 0")
    payment_method_code: str
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "vehicle_id": "123e4567-e89b-12d3-a456-426614174000",
                "customer_id": "123e4567-e89b-12d3-a456-426614174001",
                "deposit_amount_cop": 1000000,
                "payment_method_code": "transferencia",
                "notes": "Cliente pasa el viernes"
            }
        }


class CancelReservationRequest(BaseModel):
    reason: Optional[str] = None
    release_stage: Optional[str] = Field(
        None,
        description="Stage the vehicle returns to when released (default: publicado; never bloqueado or vendido)"
    )


class ExpireReservationRequest(BaseModel):
    release_stage: Optional[str] = None


class ConvertReservationRequest(BaseModel):
    """Request to turn an active reservation into a sale."""
    final_price_cop: int
    payment_method_code: str
    register_deposit_as_payment: bool = False
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "final_price_cop": 35000000,
                "payment_method_code": "transferencia",
                "register_deposit_as_payment": True
            }
        }


class ReservationResponse(BaseModel):
    reservation_id: UUID
    org_id: UUID
    vehicle_id: UUID
    customer_id: UUID
    status: ReservationStatus
    deposit_amount_cop: int
    payment_method_code: str
    reserved_at: datetime
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class ReleaseResponse(BaseModel):
    """Result of cancelling or expiring a reservation."""
    reservation: ReservationResponse
    vehicle_stage: str
    vehicle_released: bool

    class Config:
        from_attributes = True


# ============================================================================
# Sale Models
# ============================================================================

class CreateSaleRequest(BaseModel):
    """Direct sale, without a prior reservation."""
    vehicle_id: UUID
    customer_id: UUID
    final_price_cop: int
    payment_method_code: str
    notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "vehicle_id": "123e4567-e89b-12d3-a456-426614174000",
                "customer_id": "123e4567-e89b-12d3-a456-426614174001",
                "final_price_cop": 20000000,
                "payment_method_code": "efectivo"
            }
        }


class VoidSaleRequest(BaseModel):
    void_reason: str
    return_stage_code: str = Field(..., description="Stage the vehicle returns to; never bloqueado or vendido")
    refund_amount_cop: Optional[int] = None
    refund_method_code: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "void_reason": "cliente desistió",
                "return_stage_code": "publicado",
                "refund_amount_cop": 5000000,
                "refund_method_code": "transferencia"
            }
        }


class RegisterPaymentRequest(BaseModel):
    amount_cop: int
    direction: str = Field("in", description="'in' for money received, 'out' for refunds")
    payment_method_code: str
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: UUID
    sale_id: UUID
    amount_cop: int
    direction: PaymentDirection
    payment_method_code: str
    paid_at: datetime
    notes: Optional[str] = None
    created_by: Optional[UUID] = None

    class Config:
        from_attributes = True


class SaleResponse(BaseModel):
    sale_id: UUID
    org_id: UUID
    vehicle_id: UUID
    customer_id: UUID
    status: SaleStatus
    final_price_cop: int
    payment_method_code: str
    sale_date: datetime
    reservation_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[UUID] = None
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[UUID] = None
    return_stage_code: Optional[str] = None
    vehicle_snapshot: Optional[Dict[str, Any]] = None

    class Config:
        from_attributes = True


class ConversionResponse(BaseModel):
    reservation: ReservationResponse
    sale: SaleResponse
    deposit_payment: Optional[PaymentResponse] = None

    class Config:
        from_attributes = True


class VoidResponse(BaseModel):
    sale: SaleResponse
    vehicle_stage: str
    refund_payment: Optional[PaymentResponse] = None

    class Config:
        from_attributes = True


class PaymentSummaryResponse(BaseModel):
    sale_id: UUID
    final_price_cop: int
    total_in_cop: int
    total_out_cop: int
    net_cop: int
    balance_due_cop: int
    payment_count: int
    is_fully_paid: bool

    class Config:
        from_attributes = True


class PaymentLedgerResponse(BaseModel):
    """Payments of a sale (newest first) with running totals."""
    payments: List[PaymentResponse]
    summary: PaymentSummaryResponse


# ============================================================================
# Error Models
# ============================================================================

class ErrorBody(BaseModel):
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: ErrorBody

    class Config:
        json_schema_extra = {
            "example": {
                "detail": {
                    "error": "vehicle_already_reserved",
                    "message": "Vehicle already has an active reservation"
                }
            }
        }
