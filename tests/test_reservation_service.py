"""
Tests for `services/reservation_service.py` (Reservation Manager).

Covers contract rules:
- Creating a reservation blocks the vehicle; at most one active reservation
  per vehicle, even when the early pre-check is bypassed.
- Cancelling/expiring releases the vehicle unless another reservation holds it.
- A reservation never releases the vehicle into `bloqueado` or `vendido`.
- Conversion creates the sale, optionally records the deposit, marks the
  vehicle sold and closes the reservation, all together.
- Batch expiry keeps going past individual failures.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from domain.errors import InvariantViolationError, NotFoundError, StoreError, ValidationError
from domain.reservation import ReservationStatus
from domain.sale import PaymentDirection, SaleStatus
from repositories.rpc import FN_CANCEL_RESERVATION, FN_CONVERT_RESERVATION, call_atomic
from services import reservation_service
from services.reservation_service import (
    ConversionRequest,
    ReservationRequest,
    cancel_reservation,
    convert_to_sale,
    create_reservation,
    expire_reservation,
    expire_stale_reservations,
    list_vehicle_reservations,
)
from services.stage_service import check_vehicle_consistency


def _reserve(vehicle_id: UUID, customer_id: UUID, actor, deposit: int = 1_000_000):
    return create_reservation(
        ReservationRequest(
            vehicle_id=vehicle_id,
            customer_id=customer_id,
            deposit_amount_cop=deposit,
            payment_method_code="efectivo",
        ),
        actor,
    )


def test_create_reservation_blocks_vehicle(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    assert reservation.status is ReservationStatus.ACTIVE
    assert reservation.deposit_amount_cop == 1_000_000
    assert reservation.created_by == actor.actor_id
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"


def test_create_reservation_assigns_sequential_receipt_numbers(store, actor, customer_id) -> None:
    first = _reserve(UUID(store.add_vehicle(actor.org_id)), customer_id, actor)
    second = _reserve(UUID(store.add_vehicle(actor.org_id, license_plate="DEF456")), customer_id, actor)

    assert first.receipt_number == "RES-2026-00001"
    assert second.receipt_number == "RES-2026-00002"


def test_create_reservation_audits(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    entries = store.where("audit_log", action="reservation_create")
    assert len(entries) == 1
    assert entries[0]["entity"] == "reservation"
    assert entries[0]["entity_id"] == str(reservation.reservation_id)
    assert entries[0]["payload"]["deposit_amount_cop"] == 1_000_000


def test_second_reservation_for_same_vehicle_is_rejected(
    store, actor, vehicle_id, customer_id, other_customer_id
) -> None:
    """Two requests in quick succession leave exactly one active reservation."""

    _reserve(vehicle_id, customer_id, actor)

    with pytest.raises(InvariantViolationError) as exc_info:
        _reserve(vehicle_id, other_customer_id, actor)

    assert exc_info.value.code == "vehicle_already_reserved"
    assert len(store.where("reservations", vehicle_id=vehicle_id, status="active")) == 1


def test_second_reservation_rejected_inside_transaction_when_precheck_is_stale(
    store, actor, vehicle_id, customer_id, other_customer_id, monkeypatch
) -> None:
    """The atomic function re-checks under the lock even if the early read saw nothing."""

    _reserve(vehicle_id, customer_id, actor)
    monkeypatch.setattr(reservation_service, "list_active_reservations_for_vehicle", lambda *a, **k: [])

    with pytest.raises(InvariantViolationError) as exc_info:
        _reserve(vehicle_id, other_customer_id, actor)

    assert exc_info.value.code == "vehicle_already_reserved"
    assert len(store.where("reservations", vehicle_id=vehicle_id, status="active")) == 1


def test_create_reservation_validation(actor, vehicle_id, customer_id) -> None:
    with pytest.raises(ValidationError):
        ReservationRequest(vehicle_id, customer_id, 0, "efectivo")
    with pytest.raises(ValidationError):
        ReservationRequest(vehicle_id, customer_id, 1_000, "  ")

    with pytest.raises(NotFoundError) as exc_info:
        create_reservation(ReservationRequest(vehicle_id, customer_id, 1_000, "cheque"), actor)
    assert exc_info.value.code == "unknown_payment_method"

    with pytest.raises(NotFoundError) as exc_info:
        create_reservation(ReservationRequest(vehicle_id, uuid4(), 1_000, "efectivo"), actor)
    assert exc_info.value.code == "customer_not_found"


def test_create_reservation_rejects_sold_and_archived(store, actor, customer_id) -> None:
    sold = UUID(store.add_vehicle(actor.org_id, stage_code="vendido"))
    archived = UUID(store.add_vehicle(actor.org_id, is_archived=True))

    with pytest.raises(InvariantViolationError) as exc_info:
        _reserve(sold, customer_id, actor)
    assert exc_info.value.code == "vehicle_already_sold"

    with pytest.raises(InvariantViolationError) as exc_info:
        _reserve(archived, customer_id, actor)
    assert exc_info.value.code == "vehicle_archived"


def test_cancel_releases_vehicle_to_published(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    result = cancel_reservation(reservation.reservation_id, actor, "cliente no volvió")

    assert result.reservation.status is ReservationStatus.CANCELLED
    assert result.reservation.cancel_reason == "cliente no volvió"
    assert result.reservation.cancelled_by == actor.actor_id
    assert result.vehicle_released is True
    assert result.vehicle_stage == "publicado"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "publicado"
    assert len(store.where("audit_log", action="reservation_cancel")) == 1


def test_cancel_with_custom_release_stage(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    result = cancel_reservation(reservation.reservation_id, actor, release_stage="prospecto")

    assert result.vehicle_stage == "prospecto"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "prospecto"


@pytest.mark.parametrize("release_stage", ["vendido", "bloqueado"])
def test_release_to_workflow_owned_stage_is_rejected(store, actor, vehicle_id, customer_id, release_stage) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    for close in (cancel_reservation, expire_reservation):
        with pytest.raises(InvariantViolationError) as exc_info:
            close(reservation.reservation_id, actor, release_stage=release_stage)
        assert exc_info.value.code == "stage_locked"

    assert store.find("reservations", reservation.reservation_id)["status"] == "active"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"
    assert check_vehicle_consistency(vehicle_id, actor).is_consistent is True


def test_database_rejects_release_to_sold(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    with pytest.raises(InvariantViolationError) as exc_info:
        call_atomic(
            FN_CANCEL_RESERVATION,
            {
                "p_reservation_id": str(reservation.reservation_id),
                "p_actor_id": str(actor.actor_id),
                "p_release_stage": "vendido",
            },
        )

    assert exc_info.value.code == "stage_locked"
    assert store.find("reservations", reservation.reservation_id)["status"] == "active"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"


def test_cancel_keeps_vehicle_blocked_while_another_reservation_is_active(
    store, actor, vehicle_id, customer_id, other_customer_id
) -> None:
    """Legacy data with two active holds: releasing one keeps the vehicle blocked."""

    first = _reserve(vehicle_id, customer_id, actor)
    # Bypass the index to model rows that predate it.
    store.rows("reservations").append(
        dict(store.find("reservations", first.reservation_id), id=str(uuid4()), customer_id=str(other_customer_id))
    )

    result = cancel_reservation(first.reservation_id, actor)

    assert result.vehicle_released is False
    assert result.vehicle_stage == "bloqueado"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"


def test_cancel_twice_is_rejected(actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)
    cancel_reservation(reservation.reservation_id, actor)

    with pytest.raises(InvariantViolationError) as exc_info:
        cancel_reservation(reservation.reservation_id, actor)

    assert exc_info.value.code == "reservation_not_active"


def test_cancel_reservation_of_other_org_is_not_found(actor, other_org_actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    with pytest.raises(NotFoundError):
        cancel_reservation(reservation.reservation_id, other_org_actor)


def test_expire_reservation(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    result = expire_reservation(reservation.reservation_id, actor)

    assert result.reservation.status is ReservationStatus.EXPIRED
    assert store.find("vehicles", vehicle_id)["stage_code"] == "publicado"
    assert len(store.where("audit_log", action="reservation_expire")) == 1


def test_reserve_then_convert_with_deposit(store, actor, vehicle_id, customer_id) -> None:
    """Reserve with 1,000,000 deposit, then convert at 35,000,000 registering the deposit."""

    reservation = _reserve(vehicle_id, customer_id, actor, deposit=1_000_000)
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"

    result = convert_to_sale(
        ConversionRequest(
            reservation_id=reservation.reservation_id,
            final_price_cop=35_000_000,
            payment_method_code="transferencia",
            register_deposit_as_payment=True,
        ),
        actor,
    )

    assert result.sale.final_price_cop == 35_000_000
    assert result.sale.status is SaleStatus.ACTIVE
    assert result.sale.reservation_id == reservation.reservation_id
    assert result.sale.customer_id == customer_id
    assert result.reservation.status is ReservationStatus.CONVERTED

    payments = store.where("sale_payments", sale_id=result.sale.sale_id)
    assert len(payments) == 1
    assert payments[0]["direction"] == "in"
    assert payments[0]["amount_cop"] == 1_000_000
    assert result.deposit_payment is not None
    assert result.deposit_payment.direction is PaymentDirection.IN

    vehicle = store.find("vehicles", vehicle_id)
    assert vehicle["stage_code"] == "vendido"
    assert vehicle["sold_sale_id"] == str(result.sale.sale_id)


def test_convert_without_deposit_payment(store, actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)

    result = convert_to_sale(ConversionRequest(reservation.reservation_id, 30_000_000, "efectivo"), actor)

    assert result.deposit_payment is None
    assert store.rows("sale_payments") == []


def test_convert_failure_changes_nothing(store, actor, vehicle_id, customer_id) -> None:
    """A failing conversion leaves reservation, vehicle and sales untouched."""

    reservation = _reserve(vehicle_id, customer_id, actor)
    store.rpc_failures[FN_CONVERT_RESERVATION] = StoreError("connection lost")

    with pytest.raises(StoreError):
        convert_to_sale(ConversionRequest(reservation.reservation_id, 30_000_000, "efectivo", True), actor)

    assert store.find("reservations", reservation.reservation_id)["status"] == "active"
    assert store.find("vehicles", vehicle_id)["stage_code"] == "bloqueado"
    assert store.rows("sales") == []
    assert store.rows("sale_payments") == []


def test_convert_cancelled_reservation_is_rejected(actor, vehicle_id, customer_id) -> None:
    reservation = _reserve(vehicle_id, customer_id, actor)
    cancel_reservation(reservation.reservation_id, actor)

    with pytest.raises(InvariantViolationError) as exc_info:
        convert_to_sale(ConversionRequest(reservation.reservation_id, 30_000_000, "efectivo"), actor)

    assert exc_info.value.code == "reservation_not_active"


def test_expire_stale_reservations(store, actor, customer_id) -> None:
    now = datetime(2026, 3, 20, 12, 0, 0, tzinfo=timezone.utc)
    old_vehicle = UUID(store.add_vehicle(actor.org_id))
    new_vehicle = UUID(store.add_vehicle(actor.org_id, license_plate="NEW001"))
    old = store.add_reservation(actor.org_id, old_vehicle, customer_id, reserved_at=now - timedelta(days=20))
    store.add_reservation(actor.org_id, new_vehicle, customer_id, reserved_at=now - timedelta(days=2))

    report = expire_stale_reservations(15, actor, now=now)

    assert report.candidates == [UUID(old)]
    assert report.expired == [UUID(old)]
    assert report.failed == {}
    assert store.find("reservations", old)["status"] == "expired"
    assert store.find("vehicles", old_vehicle)["stage_code"] == "publicado"
    assert store.find("vehicles", new_vehicle)["stage_code"] == "bloqueado"


def test_expire_stale_reservations_dry_run(store, actor, vehicle_id, customer_id) -> None:
    now = datetime(2026, 3, 20, tzinfo=timezone.utc)
    old = store.add_reservation(actor.org_id, vehicle_id, customer_id, reserved_at=now - timedelta(days=30))

    report = expire_stale_reservations(15, actor, now=now, dry_run=True)

    assert report.candidates == [UUID(old)]
    assert report.expired == []
    assert store.find("reservations", old)["status"] == "active"


def test_expire_stale_reservations_continues_after_failure(store, actor, customer_id, monkeypatch) -> None:
    now = datetime(2026, 3, 20, tzinfo=timezone.utc)
    first = store.add_reservation(
        actor.org_id, UUID(store.add_vehicle(actor.org_id)), customer_id, reserved_at=now - timedelta(days=40)
    )
    second = store.add_reservation(
        actor.org_id, UUID(store.add_vehicle(actor.org_id)), customer_id, reserved_at=now - timedelta(days=30)
    )
    original = reservation_service.expire_reservation

    def flaky_expire(reservation_id, actor, **kwargs):
        if str(reservation_id) == first:
            raise StoreError("timeout")
        return original(reservation_id, actor, **kwargs)

    monkeypatch.setattr(reservation_service, "expire_reservation", flaky_expire)

    report = expire_stale_reservations(15, actor, now=now)

    assert report.failed == {UUID(first): "timeout"}
    assert report.expired == [UUID(second)]


def test_expire_stale_reservations_rejects_bad_threshold(actor) -> None:
    with pytest.raises(ValidationError):
        expire_stale_reservations(0, actor)


def test_list_vehicle_reservations_newest_first(store, actor, vehicle_id, customer_id) -> None:
    first = _reserve(vehicle_id, customer_id, actor)
    cancel_reservation(first.reservation_id, actor)
    second = _reserve(vehicle_id, customer_id, actor)

    assert [r.reservation_id for r in list_vehicle_reservations(vehicle_id, actor)] == [
        second.reservation_id,
        first.reservation_id,
    ]
