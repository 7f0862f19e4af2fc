from flask import Blueprint, jsonify, request

from ..exceptions import CarNotFoundError, InvalidDateRangeError
from ..services.appointment_service import AppointmentService
from ..services.car_service import CarService
from ..services.promotion_service import PromotionService
from ..services.subscription_service import SubscriptionService
from ..utils.decorators import login_required, current_user_id
from ..utils.http import reply, request_data

bp = Blueprint("appointments", __name__, url_prefix="/")


@bp.get("/appointments")
@login_required
def my_appointments():
    view = request.args.get("view", "Active")
    appts = AppointmentService.list_for_user(current_user_id(), view)
    return jsonify(view=view, appointments=[a.to_dict(with_payment=True) for a in appts])


@bp.post("/appointments")
@login_required
def create_appointment():
    """Book a car for the logged-in customer. The booking stays Pending until paid."""
    data = request_data()
    ok, msg, appt = AppointmentService.create_appointment(
        user_id=current_user_id(),
        car_id=data.get("car_id"),
        start=data.get("start_date"),
        end=data.get("end_date"),
        promotion_code=data.get("promotion_code"),
        promotion_id=data.get("promotion_id"),
        subscription_id=data.get("subscription_id"),
        special_requests=data.get("special_requests"),
    )
    if not ok:
        return reply(False, msg)
    return reply(True, msg, 201, appointment=appt.to_dict())


@bp.post("/appointments/quote")
def quote():
    """Price preview for the booking form."""
    data = request_data()
    car = CarService.get(data.get("car_id"))
    try:
        start, end = AppointmentService.validate_booking_window(data.get("start_date"), data.get("end_date"))
    except InvalidDateRangeError as e:
        return reply(False, e.message)
    promotion = PromotionService.get_by_code(data.get("promotion_code"))
    subscription = SubscriptionService.resolve_active(data.get("subscription_id"))
    q = AppointmentService.quote(car, start, end, promotion, subscription)
    return jsonify(ok=True, quote=q.to_dict(),
                   available=AppointmentService.is_car_available(car.id, start, end))


@bp.get("/appointments/<int:appointment_id>")
@login_required
def appointment_detail(appointment_id):
    appt = AppointmentService.get_for_user(appointment_id, current_user_id())
    return jsonify(appt.to_dict(with_payment=True))


@bp.post("/appointments/<int:appointment_id>/cancel")
@login_required
def cancel_appointment(appointment_id):
    ok, msg, appt = AppointmentService.cancel_by_customer(appointment_id, current_user_id())
    return reply(ok, msg, appointment=appt.to_dict(with_payment=True))


@bp.get("/appointments/<int:appointment_id>/rebook")
@login_required
def rebook(appointment_id):
    try:
        car_id = AppointmentService.rebook_target(appointment_id, current_user_id())
    except CarNotFoundError as e:
        return reply(False, e.message, 404)
    return jsonify(ok=True, car_id=car_id)


@bp.post("/promotions/check")
def check_promotion():
    data = request_data()
    return jsonify(PromotionService.check_code_for_car(data.get("code"), data.get("car_id")))


@bp.get("/promotions/active")
def active_promotions():
    return jsonify(promotions=[p.to_dict() for p in PromotionService.list_active()])


@bp.get("/subscriptions")
def active_subscriptions():
    return jsonify(subscriptions=[s.to_dict() for s in SubscriptionService.list_active()])


@bp.get("/subscriptions/<int:subscription_id>")
def subscription_detail(subscription_id):
    return jsonify(SubscriptionService.details(subscription_id))
