from datetime import timedelta

import pytest

from car_rental.exceptions import PaymentNotFoundError
from car_rental.models import Notification
from car_rental.services.payment_service import PaymentService
from car_rental.services.common import utcnow
from car_rental.utils.constants import AppointmentStatus, PaymentStatus, Role


@pytest.fixture
def booking(make_car, make_user, make_booking, day0):
    return make_booking(make_car(), make_user(), day0, day0 + timedelta(days=1), total=150.0)


def _titles(user_id):
    return [n.title for n in Notification.query.filter_by(user_id=user_id).order_by(Notification.id)]


def test_credit_card_completes_and_confirms(booking):
    ok, msg, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    assert ok, msg
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.amount == 150.0
    assert payment.transaction_id
    assert booking.status == AppointmentStatus.CONFIRMED
    assert "Payment Received" in _titles(booking.user_id)
    note = Notification.query.filter_by(title="Payment Received").one()
    assert "RM 150.00" in note.message


def test_other_method_without_reference_stays_pending(booking):
    ok, _, payment = PaymentService.process(booking.id, booking.user_id, "PayPal")
    assert ok
    assert payment.status == PaymentStatus.PENDING
    assert payment.transaction_id is None
    assert booking.status == AppointmentStatus.PENDING


def test_reference_completes_any_method(booking):
    ok, _, payment = PaymentService.process(booking.id, booking.user_id, "debit card", "REF-42")
    assert ok
    assert payment.payment_method == "Debit Card"
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.transaction_id == "REF-42"


def test_second_payment_refused(booking):
    PaymentService.process(booking.id, booking.user_id, "Credit Card")
    ok, msg, existing = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    assert not ok
    assert "already completed" in msg
    assert existing.status == PaymentStatus.COMPLETED
    assert PaymentService.prepare(booking.id, booking.user_id)["already_paid"] is True


def test_unknown_method_and_foreign_booking(booking, make_user):
    ok, msg, _ = PaymentService.process(booking.id, booking.user_id, "Bitcoin")
    assert not ok and "Unsupported payment method" in msg
    ok, _, _ = PaymentService.process(booking.id, make_user().id, "Credit Card")
    assert not ok


def test_cancelled_booking_cannot_be_paid(db, booking):
    booking.status = AppointmentStatus.CANCELLED
    db.session.commit()
    ok, msg, _ = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    assert not ok


def test_prepare_offers_amount_and_methods(booking):
    data = PaymentService.prepare(booking.id, booking.user_id)
    assert data["already_paid"] is False
    assert data["amount"] == 150.0
    assert "PayPal" in data["methods"]


def test_viewer_rules(booking, make_user):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    assert PaymentService.get_for_viewer(payment.id, booking.user_id, Role.CUSTOMER) is payment
    staff = make_user(role=Role.STAFF)
    assert PaymentService.get_for_viewer(payment.id, staff.id, Role.STAFF) is payment
    with pytest.raises(PaymentNotFoundError):
        PaymentService.get_for_viewer(payment.id, make_user().id, Role.CUSTOMER)


# -------- staff settlement --------
def test_settling_pending_payment_confirms_booking(booking):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "PayPal")
    ok, _, _ = PaymentService.update_status(payment.id, "Completed")
    assert ok
    assert booking.status == AppointmentStatus.CONFIRMED
    assert "Booking Confirmed" in _titles(booking.user_id)


def test_settling_after_rental_end_completes_booking(db, booking):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    later = booking.end_date + timedelta(hours=1)
    PaymentService.update_status(payment.id, "Completed", now=later)
    assert booking.status == AppointmentStatus.COMPLETED
    assert "Booking Completed" in _titles(booking.user_id)


def test_settling_confirmed_before_end_changes_nothing(booking):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    PaymentService.update_status(payment.id, "Completed", now=utcnow())
    assert booking.status == AppointmentStatus.CONFIRMED


@pytest.mark.parametrize("status", ["Failed", "Refunded"])
def test_failed_or_refunded_reverts_confirmation(booking, status):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    ok, msg, _ = PaymentService.update_status(payment.id, status)
    assert ok, msg
    assert payment.status == status
    assert booking.status == AppointmentStatus.PENDING
    note = Notification.query.filter_by(title="Payment Issue").one()
    assert note.type == "Warning"


def test_invalid_payment_status(booking):
    _, _, payment = PaymentService.process(booking.id, booking.user_id, "Credit Card")
    ok, _, _ = PaymentService.update_status(payment.id, "Stolen")
    assert not ok
    assert payment.status == PaymentStatus.COMPLETED


def test_list_for_user(booking, make_user):
    PaymentService.process(booking.id, booking.user_id, "PayPal")
    assert len(PaymentService.list_for_user(booking.user_id)) == 1
    assert PaymentService.list_for_user(make_user().id) == []
