"""Simulated payments and the booking state changes they drive."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from ..exceptions import AppointmentNotFoundError, PaymentNotFoundError, PaymentProcessingError
from ..extensions import db
from ..models import Appointment, Payment
from ..utils.constants import AppointmentStatus, NotificationType, PaymentMethod, PaymentStatus, Role
from .appointment_service import AppointmentService
from .common import clean, round2, to_int_safe, utcnow
from .notification_service import NotificationService

logger = logging.getLogger(__name__)


def _method_label(method: Optional[str]) -> str:
    m = clean(method).lower()
    for label in PaymentMethod.ALL:
        if label.lower() == m:
            return label
    raise PaymentProcessingError(f"Unsupported payment method '{clean(method)}'")


def _car_name(appt: Appointment) -> str:
    return appt.car.display_name if appt.car else "your booked vehicle"


class PaymentService:
    """
    No gateway is called. A payment completes immediately when paid by
    credit card or when the client supplies a transaction reference;
    any other method stays Pending until staff settle it.
    """

    @staticmethod
    def get(payment_id) -> Payment:
        pid = to_int_safe(payment_id)
        payment = db.session.get(Payment, pid) if pid else None
        if not payment:
            raise PaymentNotFoundError()
        return payment

    @staticmethod
    def list_for_user(user_id):
        return (Payment.query.join(Appointment, Payment.appointment_id == Appointment.id)
                .filter(Appointment.user_id == user_id)
                .order_by(Payment.payment_date.desc(), Payment.id.desc())
                .all())

    @staticmethod
    def completed_payment(appointment_id) -> Optional[Payment]:
        return Payment.query.filter_by(appointment_id=appointment_id,
                                       status=PaymentStatus.COMPLETED).first()

    @staticmethod
    def prepare(appointment_id, user_id) -> dict:
        """Checkout form data, or a pointer to the completed payment if already paid."""
        appt = AppointmentService.get_for_user(appointment_id, user_id)
        done = PaymentService.completed_payment(appt.id)
        if done:
            return {"already_paid": True, "payment": done.to_dict(),
                    "message": "Payment already completed for this appointment."}
        return {
            "already_paid": False,
            "appointment": appt.to_dict(),
            "amount": round2(appt.total_price),
            "payment_method": PaymentMethod.CREDIT_CARD,
            "methods": list(PaymentMethod.ALL),
        }

    @staticmethod
    def process(appointment_id, user_id, method: Optional[str] = PaymentMethod.CREDIT_CARD,
                transaction_id: Optional[str] = None, now: Optional[datetime] = None):
        """Record a payment for the user's booking. Returns (ok, message, payment)."""
        try:
            appt = AppointmentService.get_for_user(appointment_id, user_id)
        except AppointmentNotFoundError as e:
            return False, e.message, None
        if appt.status == AppointmentStatus.CANCELLED:
            return False, "Cannot pay for a cancelled booking.", None
        done = PaymentService.completed_payment(appt.id)
        if done:
            return False, "Payment already completed for this appointment.", done
        try:
            label = _method_label(method)
        except PaymentProcessingError as e:
            return False, e.message, None

        now = now or utcnow()
        txn = clean(transaction_id) or None
        payment = Payment(
            appointment_id=appt.id,
            payment_method=label,
            amount=round2(appt.total_price),
            status=PaymentStatus.PENDING,
            transaction_id=txn,
            payment_date=now,
        )
        if txn or label == PaymentMethod.CREDIT_CARD:
            payment.status = PaymentStatus.COMPLETED
            payment.transaction_id = txn or str(uuid.uuid4())
            payment.updated_at = now
            if appt.status == AppointmentStatus.PENDING:
                appt.status = AppointmentStatus.CONFIRMED
                appt.updated_at = now
            NotificationService.notify(
                appt.user_id, "Payment Received",
                f"Your payment of RM {payment.amount:,.2f} for booking {_car_name(appt)} "
                f"has been processed successfully.",
                NotificationType.SUCCESS, commit=False)
        db.session.add(payment)
        db.session.commit()
        logger.info("payment %s for appointment %s recorded as %s", payment.id, appt.id, payment.status)
        if payment.status == PaymentStatus.COMPLETED:
            return True, "Payment processed successfully!", payment
        return True, "Payment recorded and awaiting confirmation.", payment

    @staticmethod
    def get_for_viewer(payment_id, user_id, role: Optional[str]) -> Payment:
        payment = PaymentService.get(payment_id)
        if role not in Role.BACK_OFFICE and payment.appointment.user_id != user_id:
            raise PaymentNotFoundError()
        return payment

    @staticmethod
    def update_status(payment_id, status: str, now: Optional[datetime] = None):
        """
        Staff settlement:
          Completed        -> Pending booking becomes Confirmed,
                              Confirmed booking already over becomes Completed
          Failed/Refunded  -> Confirmed booking drops back to Pending
        """
        label = next((s for s in PaymentStatus.ALL if s.lower() == clean(status).lower()), None)
        if not label:
            return False, f"Invalid payment status '{status}'", None
        payment = PaymentService.get(payment_id)
        now = now or utcnow()
        payment.status = label
        payment.updated_at = now
        appt = payment.appointment

        if appt is not None:
            if label == PaymentStatus.COMPLETED:
                if appt.status == AppointmentStatus.PENDING:
                    appt.status = AppointmentStatus.CONFIRMED
                    appt.updated_at = now
                    NotificationService.notify(
                        appt.user_id, "Booking Confirmed",
                        f"Your booking for {_car_name(appt)} has been confirmed. Payment received.",
                        NotificationType.SUCCESS, commit=False)
                elif appt.status == AppointmentStatus.CONFIRMED and appt.end_date < now:
                    appt.status = AppointmentStatus.COMPLETED
                    appt.updated_at = now
                    NotificationService.notify(
                        appt.user_id, "Booking Completed",
                        f"Your booking for {_car_name(appt)} has been completed. "
                        f"Share your experience by leaving a review!",
                        NotificationType.SUCCESS, commit=False)
            elif label in (PaymentStatus.FAILED, PaymentStatus.REFUNDED):
                if appt.status == AppointmentStatus.CONFIRMED:
                    appt.status = AppointmentStatus.PENDING
                    appt.updated_at = now
                    NotificationService.notify(
                        appt.user_id, "Payment Issue",
                        f"There was an issue with your payment for booking {_car_name(appt)}. "
                        f"Please update your payment method.",
                        NotificationType.WARNING, commit=False)

        db.session.commit()
        logger.info("payment %s set to %s", payment.id, label)
        return True, f"Payment status updated to {label} successfully!", payment
