from flask import Blueprint, jsonify

from ..services.payment_service import PaymentService
from ..utils.constants import Role
from ..utils.decorators import login_required, role_required, current_user_id, current_role
from ..utils.http import reply, request_data

bp = Blueprint("payments", __name__, url_prefix="/payments")


@bp.get("")
@login_required
def my_payments():
    payments = PaymentService.list_for_user(current_user_id())
    return jsonify(payments=[p.to_dict() for p in payments])


@bp.get("/new/<int:appointment_id>")
@login_required
def checkout(appointment_id):
    return jsonify(PaymentService.prepare(appointment_id, current_user_id()))


@bp.post("")
@login_required
def pay():
    data = request_data()
    ok, msg, payment = PaymentService.process(
        data.get("appointment_id"),
        current_user_id(),
        method=data.get("payment_method"),
        transaction_id=data.get("transaction_id"),
    )
    extra = {"payment": payment.to_dict()} if payment else {}
    return reply(ok, msg, 201 if ok else None, **extra)


@bp.get("/<int:payment_id>")
@login_required
def payment_detail(payment_id):
    payment = PaymentService.get_for_viewer(payment_id, current_user_id(), current_role())
    out = payment.to_dict()
    out["appointment"] = payment.appointment.to_dict()
    return jsonify(out)


@bp.post("/<int:payment_id>/status")
@role_required(Role.STAFF, Role.MANAGER)
def update_status(payment_id):
    ok, msg, payment = PaymentService.update_status(payment_id, request_data().get("status"))
    extra = {"payment": payment.to_dict(), "appointment": payment.appointment.to_dict()} if payment else {}
    return reply(ok, msg, **extra)
