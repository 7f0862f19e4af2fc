from __future__ import annotations

from flask import Blueprint, jsonify, request

from ..services.analytics_service import AnalyticsService
from ..services.appointment_service import AppointmentService
from ..services.car_service import CarService
from ..services.common import parse_datetime
from ..services.promotion_service import PromotionService
from ..services.review_service import ReviewService
from ..services.subscription_service import SubscriptionService
from ..services.user_service import UserService
from ..utils.constants import Role
from ..utils.decorators import role_required, current_user_id
from ..utils.http import id_list, reply, request_data

bp = Blueprint("staff", __name__, url_prefix="/staff")


@bp.before_request
@role_required(Role.STAFF, Role.MANAGER)
def _back_office_only():
    """Every staff endpoint needs a Staff or Manager session."""
    return None


# -------- orders --------
@bp.get("/orders")
def orders():
    status = request.args.get("status", "All")
    appts = AppointmentService.list_orders(status, request.args.get("search"))
    return jsonify(status=status, orders=[a.to_dict(with_payment=True) for a in appts])


@bp.get("/orders/<int:appointment_id>")
def order_detail(appointment_id):
    appt = AppointmentService.get(appointment_id)
    out = appt.to_dict(with_payment=True)
    out["payments"] = [p.to_dict() for p in appt.payments]
    return jsonify(out)


@bp.post("/orders/<int:appointment_id>/status")
def update_order_status(appointment_id):
    ok, msg, appt = AppointmentService.update_status(appointment_id, request_data().get("status"))
    extra = {"appointment": appt.to_dict(with_payment=True)} if appt else {}
    return reply(ok, msg, **extra)


@bp.post("/orders/batch-status")
def batch_update_status():
    data = request_data()
    ok, msg, count = AppointmentService.batch_update_status(id_list(data.get("ids")), data.get("status"))
    return reply(ok, msg, updated=count)


@bp.get("/calendar")
def calendar():
    events = AppointmentService.calendar_events(
        parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end")))
    return jsonify(events=events)


# -------- fleet --------
@bp.get("/vehicles")
def vehicles():
    """List all vehicles with optional filters."""
    cars = CarService.manage_cars(
        search=request.args.get("search"),
        status=request.args.get("status"),
        state=request.args.get("state"),
    )
    return jsonify(vehicles=[c.to_dict() for c in cars], stats=CarService.fleet_stats())


@bp.post("/vehicles")
def add_vehicle():
    ok, msg, car = CarService.create_car(request_data())
    if ok and request.files.get("image"):
        ok, msg, car = CarService.attach_image(car.id, request.files["image"])
    extra = {"vehicle": car.to_dict()} if car else {}
    return reply(ok, msg, 201 if ok else None, **extra)


@bp.post("/vehicles/<int:car_id>")
def edit_vehicle(car_id):
    ok, msg, car = CarService.update_car(car_id, request_data())
    if ok and request.files.get("image"):
        ok, msg, car = CarService.attach_image(car.id, request.files["image"])
    return reply(ok, msg, vehicle=car.to_dict())


@bp.post("/vehicles/<int:car_id>/toggle")
def toggle_vehicle(car_id):
    ok, msg, car = CarService.toggle_availability(car_id)
    return reply(ok, msg, vehicle=car.to_dict())


@bp.post("/vehicles/<int:car_id>/image")
def upload_vehicle_image(car_id):
    ok, msg, car = CarService.attach_image(car_id, request.files.get("image"))
    return reply(ok, msg, vehicle=car.to_dict())


@bp.delete("/vehicles/<int:car_id>")
def delete_vehicle(car_id):
    ok, msg = CarService.delete_car(car_id)
    return reply(ok, msg, None if ok else 409)


# -------- reviews --------
@bp.get("/reviews")
def reviews():
    items, stats = ReviewService.manage(request.args.get("status"))
    return jsonify(reviews=[r.to_dict() for r in items], stats=stats)


@bp.post("/reviews/<int:review_id>/approve")
def approve_review(review_id):
    ok, msg = ReviewService.approve(review_id)
    return reply(ok, msg)


@bp.post("/reviews/<int:review_id>/reject")
def reject_review(review_id):
    ok, msg = ReviewService.reject(review_id)
    return reply(ok, msg)


# -------- users --------
@bp.get("/users")
def users():
    rows = UserService.search_users(
        search=request.args.get("search"),
        status=request.args.get("status"),
        role=request.args.get("role"),
    )
    return jsonify(users=rows)


@bp.get("/users/<int:user_id>")
def user_details(user_id):
    return jsonify(UserService.user_details(user_id))


@bp.post("/users/<int:user_id>/toggle")
def toggle_user(user_id):
    actor = UserService.get(current_user_id())
    ok, msg, user = UserService.toggle_status(user_id, actor)
    return reply(ok, msg, user=user.to_dict())


# -------- promotions --------
@bp.get("/promotions")
def promotions():
    return jsonify(promotions=[p.to_dict() for p in PromotionService.list_all()])


@bp.post("/promotions")
def create_promotion():
    ok, msg, promotion = PromotionService.create(request_data())
    extra = {"promotion": promotion.to_dict()} if promotion else {}
    return reply(ok, msg, 201 if ok else None, **extra)


@bp.post("/promotions/<int:promotion_id>")
def edit_promotion(promotion_id):
    ok, msg, promotion = PromotionService.update(promotion_id, request_data())
    return reply(ok, msg, promotion=promotion.to_dict())


@bp.post("/promotions/<int:promotion_id>/toggle")
def toggle_promotion(promotion_id):
    ok, msg, promotion = PromotionService.toggle_status(promotion_id)
    return reply(ok, msg, promotion=promotion.to_dict())


@bp.delete("/promotions/<int:promotion_id>")
def delete_promotion(promotion_id):
    ok, msg = PromotionService.delete(promotion_id)
    return reply(ok, msg)


# -------- subscriptions --------
@bp.get("/subscriptions")
def subscriptions():
    return jsonify(subscriptions=[s.to_dict() for s in SubscriptionService.list_all()])


@bp.post("/subscriptions")
def create_subscription():
    ok, msg, plan = SubscriptionService.create(request_data())
    extra = {"subscription": plan.to_dict()} if plan else {}
    return reply(ok, msg, 201 if ok else None, **extra)


@bp.post("/subscriptions/<int:subscription_id>")
def edit_subscription(subscription_id):
    ok, msg, plan = SubscriptionService.update(subscription_id, request_data())
    return reply(ok, msg, subscription=plan.to_dict())


@bp.post("/subscriptions/<int:subscription_id>/toggle")
def toggle_subscription(subscription_id):
    ok, msg, plan = SubscriptionService.toggle_status(subscription_id)
    return reply(ok, msg, subscription=plan.to_dict())


@bp.delete("/subscriptions/<int:subscription_id>")
def delete_subscription(subscription_id):
    ok, msg = SubscriptionService.delete(subscription_id)
    return reply(ok, msg)


# -------- analytics --------
@bp.get("/analytics")
def analytics():
    """Staff dashboards: revenue/bookings today, this month and last month."""
    return jsonify(AnalyticsService.dashboard())


@bp.get("/analytics/revenue")
def revenue_data():
    series = AnalyticsService.revenue_series(
        parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end")))
    return jsonify(series=series)


@bp.get("/reports")
def reports():
    data = AnalyticsService.report(
        parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end")))
    return jsonify(data)
