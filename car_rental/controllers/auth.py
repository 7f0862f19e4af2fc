from flask import Blueprint, jsonify, request, session

from ..services.user_service import UserService
from ..utils.decorators import login_required, current_user_id
from ..utils.http import reply, request_data

bp = Blueprint("auth", __name__, url_prefix="/")


@bp.post("/register")
def register_submit():
    data = request_data()
    ok, msg, user = UserService.register_customer(
        data.get("email"),
        data.get("password"),
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        phone=data.get("phone", ""),
    )
    if not ok:
        return reply(False, msg)
    return reply(True, "Registration successful. Please login.", 201, user=user.to_dict())


@bp.post("/login")
def login_submit():
    data = request_data()
    user = UserService.authenticate(data.get("email"), data.get("password"))
    if not user:
        return reply(False, "Invalid credentials", 401)

    session.clear()
    session["uid"] = user.id
    session["role"] = user.role
    session["email"] = user.email
    return reply(True, "Logged in", user=user.to_dict())


@bp.post("/logout")
def logout():
    session.clear()
    return reply(True, "Logged out")


@bp.get("/me")
@login_required
def me():
    return jsonify(UserService.get(current_user_id()).to_dict())


@bp.post("/profile")
@login_required
def update_profile():
    ok, msg, user = UserService.update_profile(
        current_user_id(), request_data(), picture=request.files.get("profile_picture"))
    return reply(ok, msg, user=user.to_dict())
