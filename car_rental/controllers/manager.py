from flask import Blueprint, jsonify, request

from ..services.analytics_service import AnalyticsService
from ..services.user_service import UserService
from ..utils.constants import Role
from ..utils.decorators import role_required, current_user_id
from ..utils.http import reply, request_data

bp = Blueprint("manager", __name__, url_prefix="/manager")


@bp.before_request
@role_required(Role.MANAGER)
def _managers_only():
    return None


@bp.get("/dashboard")
def dashboard():
    return jsonify(AnalyticsService.manager_overview())


@bp.get("/staff")
def staff_list():
    return jsonify(staff=[u.to_dict() for u in UserService.list_staff()])


@bp.post("/staff")
def create_staff():
    data = request_data()
    ok, msg, user = UserService.create_staff(
        data.get("email"),
        data.get("password"),
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        phone=data.get("phone", ""),
    )
    if not ok:
        return reply(False, msg)
    return reply(True, "Staff account created successfully.", 201, user=user.to_dict())


@bp.post("/users/<int:user_id>/toggle")
def toggle_user(user_id):
    ok, msg, user = UserService.toggle_status(user_id, UserService.get(current_user_id()))
    return reply(ok, msg, user=user.to_dict())


@bp.get("/users")
def all_users():
    rows = UserService.search_users(
        search=request.args.get("search"),
        status=request.args.get("status"),
        role=request.args.get("role"),
    )
    return jsonify(users=rows)


@bp.delete("/users/<int:user_id>")
def delete_user(user_id):
    ok, msg = UserService.delete_user(user_id, current_user_id())
    return reply(ok, msg)


@bp.post("/customers/delete-all")
def delete_all_customers():
    ok, msg = UserService.delete_all_customers()
    return reply(ok, msg)


@bp.get("/statistics")
def statistics():
    return jsonify(AnalyticsService.system_statistics())
