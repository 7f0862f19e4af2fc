from datetime import timedelta

import pytest

from car_rental.services.common import utcnow
from car_rental.services.promotion_service import PromotionService


def test_code_lookup_is_case_insensitive(make_promotion):
    p = make_promotion(code="SUMMER20", pct=20)
    assert PromotionService.get_by_code("summer20") is p
    assert PromotionService.get_by_code("  Summer20 ") is p
    assert PromotionService.get_by_code("") is None


@pytest.mark.parametrize("kwargs,electric,expected", [
    ({}, False, True),
    ({"active": False}, False, False),
    ({"ev_only": True}, False, False),
    ({"ev_only": True}, True, True),
    ({"max_uses": 3, "current_uses": 3}, False, False),
    ({"max_uses": 3, "current_uses": 2}, False, True),
])
def test_applicability_rules(make_promotion, kwargs, electric, expected):
    p = make_promotion(**kwargs)
    assert PromotionService.is_applicable(p, electric) is expected


def test_outside_date_window(make_promotion):
    now = utcnow()
    future = make_promotion(code="LATER", start=now + timedelta(days=2), end=now + timedelta(days=9))
    expired = make_promotion(code="OLD", start=now - timedelta(days=9), end=now - timedelta(days=2))
    assert not PromotionService.is_applicable(future, False)
    assert not PromotionService.is_applicable(expired, False)
    assert PromotionService.is_applicable(future, False, now=now + timedelta(days=3))


def test_discount_respects_cap(make_promotion):
    capped = make_promotion(code="CAP", pct=50, cap=30)
    open_ended = make_promotion(code="OPEN", pct=50)
    assert PromotionService.promotion_discount(capped, 200) == 30
    assert PromotionService.promotion_discount(open_ended, 200) == 100


def test_check_code_for_car_messages(make_promotion, make_car):
    gas = make_car()
    ev = make_car(make="Tesla", model="Model 3", electric=True)
    make_promotion(code="EVWEEKEND", pct=25, ev_only=True)

    assert PromotionService.check_code_for_car("", gas.id)["message"] == "Code is required"
    assert PromotionService.check_code_for_car("EVWEEKEND", 999)["message"] == "Car not found"
    assert PromotionService.check_code_for_car("NOPE", gas.id)["message"] == "Invalid code"
    assert PromotionService.check_code_for_car("evweekend", gas.id)["message"] == "Invalid or expired code"

    ok = PromotionService.check_code_for_car("evweekend", ev.id)
    assert ok["valid"] is True
    assert ok["message"] == "Valid! 25% discount applied."


def test_active_list_skips_exhausted_and_inactive(make_promotion):
    best = make_promotion(code="BIG", pct=30)
    make_promotion(code="SMALL", pct=5)
    make_promotion(code="USED", pct=40, max_uses=1, current_uses=1)
    make_promotion(code="OFF", pct=50, active=False)
    codes = [p.code for p in PromotionService.list_active()]
    assert codes == ["BIG", "SMALL"]
    assert PromotionService.list_active()[0] is best


# -------- admin --------
def _form(**over):
    now = utcnow()
    data = {
        "name": "Raya Sale",
        "code": "raya10",
        "discount_percentage": "10",
        "start_date": (now - timedelta(days=1)).strftime("%Y-%m-%dT%H:%M"),
        "end_date": (now + timedelta(days=10)).strftime("%Y-%m-%dT%H:%M"),
    }
    data.update(over)
    return data


def test_create_normalises_code(db):
    ok, msg, p = PromotionService.create(_form(max_discount_amount="", is_ev_only="on"))
    assert ok, msg
    assert p.code == "RAYA10"
    assert p.max_discount_amount is None
    assert p.is_ev_only is True
    assert p.current_uses == 0


@pytest.mark.parametrize("over,error", [
    ({"name": ""}, "Promotion name is required"),
    ({"discount_percentage": "120"}, "Discount percentage must be between 0 and 100"),
    ({"max_discount_amount": "-5"}, "Max discount amount cannot be negative"),
    ({"max_uses": "0"}, "Max uses must be at least 1"),
])
def test_create_validation(db, over, error):
    ok, msg, p = PromotionService.create(_form(**over))
    assert not ok
    assert msg == error
    assert p is None


def test_end_before_start_rejected(db):
    now = utcnow()
    ok, msg, _ = PromotionService.create(_form(start_date=now.isoformat(),
                                               end_date=(now - timedelta(days=1)).isoformat()))
    assert not ok and msg == "End date must be after start date"


def test_duplicate_code_rejected(make_promotion):
    make_promotion(code="RAYA10")
    ok, msg, _ = PromotionService.create(_form())
    assert not ok
    assert "already exists" in msg


def test_update_toggle_delete(db, make_promotion, make_car, make_user, make_booking, day0):
    p = make_promotion(code="EDITME", pct=10)
    ok, _, p = PromotionService.update(p.id, {"discount_percentage": "15"})
    assert ok and p.discount_percentage == 15

    ok, msg, p = PromotionService.toggle_status(p.id)
    assert not p.is_active and msg == "Promotion deactivated successfully!"

    appt = make_booking(make_car(), make_user(), day0, day0 + timedelta(days=1))
    appt.promotion_id = p.id
    db.session.commit()
    ok, _ = PromotionService.delete(p.id)
    assert ok
    assert appt.promotion_id is None
    assert PromotionService.get_by_code("EDITME") is None


def test_validate_code(make_promotion):
    make_promotion(code="EVONLY", ev_only=True)
    assert PromotionService.validate_code("evonly", True)
    assert not PromotionService.validate_code("evonly", False)
    assert not PromotionService.validate_code("missing", True)
