from datetime import timedelta

import pytest

from car_rental.models import Notification
from car_rental.services.appointment_service import AppointmentService
from car_rental.services.common import utcnow
from car_rental.utils.constants import AppointmentStatus


@pytest.fixture
def car(make_car):
    return make_car(daily_rate=80.0)


@pytest.fixture
def user(make_user):
    return make_user(first_name="Aina", last_name="Rahman", phone="0123456789")


def test_create_sets_pending_price_and_contact(car, user, day0):
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, car.id, day0, day0 + timedelta(days=2), special_requests="  child seat  ")
    assert ok, msg
    assert appt.status == AppointmentStatus.PENDING
    assert appt.total_price == 160.0
    assert appt.discount_amount is None
    assert appt.customer_name == "Aina Rahman"
    assert appt.customer_email == user.email
    assert appt.customer_phone == "0123456789"
    assert appt.special_requests == "child seat"


def test_create_notifies_customer(car, user, day0):
    AppointmentService.create_appointment(user.id, car.id, day0, day0 + timedelta(days=1))
    notes = Notification.query.filter_by(user_id=user.id).all()
    assert [n.title for n in notes] == ["Booking Created"]
    assert car.display_name in notes[0].message


@pytest.mark.parametrize("start_offset,end_offset,expected", [
    (timedelta(days=1), timedelta(days=1), "Return date must be after pickup date."),
    (timedelta(days=2), timedelta(days=1), "Return date must be after pickup date."),
    (timedelta(0), timedelta(minutes=30), "Rental duration must be at least 1 hour."),
])
def test_invalid_windows_rejected(car, user, day0, start_offset, end_offset, expected):
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, car.id, day0 + start_offset, day0 + end_offset)
    assert not ok
    assert appt is None
    assert msg == expected


def test_past_pickup_rejected(car, user):
    start = utcnow() - timedelta(hours=2)
    ok, msg, _ = AppointmentService.create_appointment(user.id, car.id, start, start + timedelta(days=1))
    assert not ok
    assert msg == "Pickup date cannot be in the past."


def test_pickup_within_tolerance_accepted(car, user):
    now = utcnow()
    ok, msg, _ = AppointmentService.create_appointment(
        user.id, car.id, now - timedelta(minutes=2), now + timedelta(hours=3), now=now)
    assert ok, msg


def test_missing_dates_and_car(car, user, day0):
    assert AppointmentService.create_appointment(user.id, car.id, None, day0)[1] == "Pickup date is required."
    assert AppointmentService.create_appointment(user.id, car.id, day0, "")[1] == "Return date is required."
    ok, msg, _ = AppointmentService.create_appointment(user.id, None, day0, day0 + timedelta(days=1))
    assert not ok and "select a vehicle" in msg
    ok, msg, _ = AppointmentService.create_appointment(user.id, 777, day0, day0 + timedelta(days=1))
    assert not ok and "does not exist" in msg


def test_unavailable_car_rejected(make_car, user, day0):
    hidden = make_car(is_available=False)
    ok, msg, _ = AppointmentService.create_appointment(user.id, hidden.id, day0, day0 + timedelta(days=1))
    assert not ok
    assert "currently unavailable" in msg


def test_string_dates_from_forms(car, user, day0):
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, str(car.id), day0.strftime("%Y-%m-%dT%H:%M"),
        (day0 + timedelta(days=3)).strftime("%Y-%m-%dT%H:%M"))
    assert ok, msg
    assert appt.start_date == day0


def test_promotion_code_applied_and_counted(car, user, day0, make_promotion):
    promo = make_promotion(code="SUMMER20", pct=20, cap=100)
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, car.id, day0, day0 + timedelta(days=2), promotion_code="summer20")
    assert ok, msg
    assert appt.promotion_id == promo.id
    assert appt.discount_amount == 32.0
    assert appt.total_price == 128.0
    assert promo.current_uses == 1


def test_invalid_promotion_code_rejected(car, user, day0, make_promotion):
    make_promotion(code="EVONLY", ev_only=True)
    for code in ("NOPE", "EVONLY"):
        ok, msg, _ = AppointmentService.create_appointment(
            user.id, car.id, day0, day0 + timedelta(days=1), promotion_code=code)
        assert not ok
        assert msg.startswith(f"The promotion code '{code}' is invalid or expired")


def test_inactive_subscription_dropped(car, user, day0, make_subscription):
    plan = make_subscription(pct=20, active=False)
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, car.id, day0, day0 + timedelta(days=1), subscription_id=plan.id)
    assert ok, msg
    assert appt.subscription_id is None
    assert appt.total_price == 80.0


def test_active_subscription_discount(car, user, day0, make_subscription):
    plan = make_subscription(pct=25)
    ok, msg, appt = AppointmentService.create_appointment(
        user.id, car.id, day0, day0 + timedelta(days=1), subscription_id=plan.id)
    assert ok, msg
    assert appt.subscription_id == plan.id
    assert appt.discount_amount == 20.0
    assert appt.total_price == 60.0


def test_special_requests_length_limit(car, user, day0):
    ok, msg, _ = AppointmentService.create_appointment(
        user.id, car.id, day0, day0 + timedelta(days=1), special_requests="x" * 501)
    assert not ok
    assert "500" in msg


def test_customer_views(make_car, make_user, make_booking, day0):
    car = make_car()
    user = make_user()
    pending = make_booking(car, user, day0, day0 + timedelta(days=1))
    done = make_booking(car, user, day0 - timedelta(days=30), day0 - timedelta(days=29),
                        status=AppointmentStatus.COMPLETED)
    gone = make_booking(car, user, day0 + timedelta(days=5), day0 + timedelta(days=6),
                        status=AppointmentStatus.CANCELLED)

    active = {a.id for a in AppointmentService.list_for_user(user.id, "Active")}
    history = {a.id for a in AppointmentService.list_for_user(user.id, "History")}
    everything = {a.id for a in AppointmentService.list_for_user(user.id, "All")}
    assert active == {pending.id, done.id}
    assert history == {done.id, gone.id}
    assert everything == {pending.id, done.id, gone.id}


def test_rebook_returns_car_of_own_booking(make_car, make_user, make_booking, day0):
    from car_rental.exceptions import AppointmentNotFoundError

    car = make_car()
    user = make_user()
    appt = make_booking(car, user, day0, day0 + timedelta(days=1))
    assert AppointmentService.rebook_target(appt.id, user.id) == car.id
    with pytest.raises(AppointmentNotFoundError):
        AppointmentService.rebook_target(appt.id, make_user().id)


# -------- re-pricing on update --------
def test_update_keeps_single_use_promotion_discount(make_car, make_user, make_promotion, day0):
    car = make_car(daily_rate=100.0)
    promo = make_promotion(code="ONCE", pct=20, max_uses=1)
    ok, msg, appt = AppointmentService.create_appointment(
        make_user().id, car.id, day0, day0 + timedelta(days=2), promotion_code="once")
    assert ok, msg
    assert (appt.total_price, appt.discount_amount) == (160.0, 40.0)
    assert promo.current_uses == 1

    ok, msg, appt = AppointmentService.update_appointment(appt.id, special_requests="child seat")
    assert ok, msg
    assert appt.promotion_id == promo.id
    assert (appt.total_price, appt.discount_amount) == (160.0, 40.0)
    assert promo.current_uses == 1


def test_update_keeps_discount_after_promotion_window_closes(db, make_car, make_user, make_promotion, day0):
    car = make_car(daily_rate=100.0)
    promo = make_promotion(code="SHORT", pct=10)
    _, _, appt = AppointmentService.create_appointment(
        make_user().id, car.id, day0, day0 + timedelta(days=1), promotion_code="SHORT")
    promo.end_date = utcnow() - timedelta(hours=1)
    db.session.commit()

    ok, msg, appt = AppointmentService.update_appointment(appt.id, end_date=day0 + timedelta(days=2))
    assert ok, msg
    assert appt.total_price == 180.0


def test_update_keeps_subscription_that_was_switched_off(db, make_car, make_user, make_subscription, day0):
    car = make_car(daily_rate=100.0)
    plan = make_subscription(pct=15)
    _, _, appt = AppointmentService.create_appointment(
        make_user().id, car.id, day0, day0 + timedelta(days=1), subscription_id=plan.id)
    assert appt.total_price == 85.0
    plan.is_active = False
    db.session.commit()

    ok, _, appt = AppointmentService.update_appointment(appt.id, special_requests="late return")
    assert ok
    assert appt.subscription_id == plan.id
    assert appt.total_price == 85.0


def test_update_to_a_new_promotion_counts_its_use(make_car, make_user, make_promotion, day0):
    car = make_car(daily_rate=100.0)
    first = make_promotion(code="FIRST", pct=10)
    second = make_promotion(code="SECOND", pct=30, max_uses=5)
    _, _, appt = AppointmentService.create_appointment(
        make_user().id, car.id, day0, day0 + timedelta(days=1), promotion_code="FIRST")

    ok, _, appt = AppointmentService.update_appointment(appt.id, promotion_id=second.id)
    assert ok
    assert appt.promotion_id == second.id
    assert appt.total_price == 70.0
    assert second.current_uses == 1
    assert first.current_uses == 1


def test_update_ignores_exhausted_new_promotion(make_car, make_user, make_promotion, day0):
    car = make_car(daily_rate=100.0)
    used_up = make_promotion(code="GONE", pct=50, max_uses=1, current_uses=1)
    _, _, appt = AppointmentService.create_appointment(
        make_user().id, car.id, day0, day0 + timedelta(days=1))

    ok, _, appt = AppointmentService.update_appointment(appt.id, promotion_id=used_up.id)
    assert ok
    assert appt.promotion_id is None
    assert appt.total_price == 100.0
