"""Customer self-service: favorites, notifications and own reviews."""
from flask import Blueprint, jsonify

from ..services.favorite_service import FavoriteService
from ..services.notification_service import NotificationService
from ..services.review_service import ReviewService
from ..utils.decorators import login_required, current_user_id, current_role
from ..utils.http import reply, request_data

bp = Blueprint("account", __name__, url_prefix="/")


# -------- favorites --------
@bp.get("/favorites")
@login_required
def favorites():
    return jsonify(favorites=[f.to_dict() for f in FavoriteService.list_for_user(current_user_id())])


@bp.post("/favorites/<int:car_id>")
@login_required
def add_favorite(car_id):
    ok, msg = FavoriteService.add(current_user_id(), car_id)
    return reply(ok, msg)


@bp.delete("/favorites/<int:car_id>")
@login_required
def remove_favorite(car_id):
    ok, msg = FavoriteService.remove(current_user_id(), car_id)
    return reply(ok, msg, None if ok else 404)


@bp.get("/favorites/<int:car_id>/status")
def favorite_status(car_id):
    return jsonify(favorited=FavoriteService.is_favorited(current_user_id(), car_id))


# -------- notifications --------
@bp.get("/notifications")
@login_required
def notifications():
    uid = current_user_id()
    items = NotificationService.list_for_user(uid)
    return jsonify(notifications=[n.to_dict() for n in items],
                   unread=NotificationService.unread_count(uid))


@bp.post("/notifications/<int:notification_id>/read")
@login_required
def mark_read(notification_id):
    ok, msg = NotificationService.mark_read(notification_id, current_user_id())
    return reply(ok, msg, None if ok else 404)


@bp.post("/notifications/read-all")
@login_required
def mark_all_read():
    count = NotificationService.mark_all_read(current_user_id())
    return reply(True, f"{count} notification(s) marked as read")


@bp.get("/notifications/unread-count")
@login_required
def unread_count():
    return jsonify(count=NotificationService.unread_count(current_user_id()))


# -------- reviews --------
@bp.post("/reviews")
@login_required
def create_review():
    data = request_data()
    ok, msg, review = ReviewService.create(
        data.get("car_id"), current_user_id(), data.get("rating"), data.get("comment"))
    if not ok:
        extra = {"existing_review_id": review.id} if review else {}
        return reply(False, msg, 409 if review else 400, **extra)
    return reply(True, msg, 201, review=review.to_dict())


@bp.post("/reviews/<int:review_id>")
@login_required
def edit_review(review_id):
    data = request_data()
    ok, msg, review = ReviewService.edit(review_id, current_user_id(), data.get("rating"), data.get("comment"))
    return reply(ok, msg, review=review.to_dict())


@bp.delete("/reviews/<int:review_id>")
@login_required
def delete_review(review_id):
    ok, msg = ReviewService.delete(review_id, current_user_id(), current_role())
    return reply(ok, msg)
