from flask import Blueprint, jsonify, request

from ..services.appointment_service import AppointmentService
from ..services.car_service import CarService
from ..services.common import parse_datetime
from ..services.favorite_service import FavoriteService
from ..services.review_service import ReviewService
from ..utils.decorators import current_user_id
from ..utils.http import id_list

bp = Blueprint("cars", __name__, url_prefix="/")


@bp.get("/cars")
def list_cars():
    """Catalogue search. Empty query params are ignored."""
    q = {k: (v or "").strip() for k, v in request.args.items()}
    cars = CarService.search_cars(
        query=q.get("q"),
        fuel_type=q.get("fuel_type"),
        state=q.get("state"),
        category_id=q.get("category_id"),
        min_price=q.get("min_price"),
        max_price=q.get("max_price"),
        sort_by=q.get("sort_by"),
        start=q.get("start"),
        end=q.get("end"),
    )
    ratings = CarService.average_ratings(c.id for c in cars)
    favs = FavoriteService.favorited_ids(current_user_id(), [c.id for c in cars])
    rows = []
    for c in cars:
        row = c.to_dict()
        avg, count = ratings.get(c.id, (0.0, 0))
        row.update(average_rating=avg, review_count=count, is_favorited=c.id in favs)
        rows.append(row)
    return jsonify(cars=rows, filters=CarService.filter_options())


@bp.get("/cars/filters")
def filter_options():
    return jsonify(CarService.filter_options())


@bp.get("/cars/recommendations")
def recommendations():
    limit = request.args.get("limit", type=int) or 6
    return jsonify(cars=[c.to_dict() for c in CarService.recommendations(limit)])


@bp.get("/cars/<int:car_id>")
def car_detail(car_id):
    return jsonify(CarService.car_details(car_id, user_id=current_user_id()))


@bp.get("/cars/<int:car_id>/summary")
def car_summary(car_id):
    return jsonify(CarService.car_summary(car_id))


@bp.get("/cars/<int:car_id>/slots")
def car_slots(car_id):
    CarService.get(car_id)
    slots = AppointmentService.available_slots(
        car_id, parse_datetime(request.args.get("start")), parse_datetime(request.args.get("end")))
    return jsonify(slots=[s.to_dict() for s in slots])


@bp.get("/cars/<int:car_id>/reviews")
def car_reviews(car_id):
    CarService.get(car_id)
    reviews = ReviewService.list_approved(car_id)
    return jsonify(reviews=[r.to_dict() for r in reviews], **ReviewService.rating_summary(car_id))


@bp.get("/ev")
def ev_hub():
    return jsonify(cars=[c.to_dict() for c in CarService.electric_cars()])


@bp.get("/ev/compare")
def ev_compare():
    ids = request.args.getlist("ids")
    if len(ids) == 1:
        ids = id_list(ids[0])
    return jsonify(cars=[c.to_dict() for c in CarService.compare_electric(ids)])
