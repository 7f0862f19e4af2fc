"""Appointment engine: availability, free slots, pricing and booking lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import List, Optional

from ..exceptions import AppointmentNotFoundError, CarNotFoundError, InvalidDateRangeError
from ..extensions import db
from ..models import Appointment, Car, Payment, Promotion, Subscription, User
from ..utils.constants import (
    AppointmentStatus,
    CustomerView,
    FULL_REFUND_HOURS,
    MIN_BOOKING_HOURS,
    NotificationType,
    PAST_TOLERANCE_MINUTES,
    PaymentStatus,
    SLOT_WINDOW_DAYS,
)
from .common import (
    _lc,
    clean,
    fmt_dt,
    parse_datetime,
    percentage_of,
    rental_days,
    round2,
    start_of_day,
    to_int_safe,
    utcnow,
)
from .notification_service import NotificationService
from .promotion_service import PromotionService
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

DISPLAY_FMT = "%b %d, %Y %H:%M"


@dataclass
class PriceQuote:
    """Price breakdown for one car over one booking window."""
    days: int
    daily_rate: float
    base_price: float
    subscription_discount: float = 0.0
    promotion_discount: float = 0.0

    @property
    def discount_amount(self) -> float:
        # combined discount can never exceed what is being charged
        return round2(min(self.subscription_discount + self.promotion_discount, self.base_price))

    @property
    def total_price(self) -> float:
        return round2(self.base_price - self.discount_amount)

    def to_dict(self) -> dict:
        out = asdict(self)
        out.update(discount_amount=self.discount_amount, total_price=self.total_price)
        return out


@dataclass
class TimeSlot:
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {"start": fmt_dt(self.start), "end": fmt_dt(self.end)}


def _status_label(status: str) -> str:
    for s in AppointmentStatus.ALL:
        if _lc(s) == _lc(status):
            return s
    return ""


class AppointmentService:
    """
    Booking rules shared by the customer and back-office flows.

    Commands return `(ok, message, appointment)`; look-ups raise
    AppointmentNotFoundError / CarNotFoundError.
    """

    # -------- look-ups --------
    @staticmethod
    def get(appointment_id) -> Appointment:
        aid = to_int_safe(appointment_id)
        appt = db.session.get(Appointment, aid) if aid else None
        if not appt:
            raise AppointmentNotFoundError()
        return appt

    @staticmethod
    def get_for_user(appointment_id, user_id) -> Appointment:
        """Owner-only view; other users get the same 'not found' as a missing id."""
        appt = AppointmentService.get(appointment_id)
        if appt.user_id != user_id:
            raise AppointmentNotFoundError("Booking not found.")
        return appt

    @staticmethod
    def _car(car_id) -> Optional[Car]:
        cid = to_int_safe(car_id)
        return db.session.get(Car, cid) if cid else None

    # -------- availability --------
    @staticmethod
    def find_conflicts(car_id, start: datetime, end: datetime, exclude_id=None) -> List[Appointment]:
        """Non-cancelled bookings of the car overlapping [start, end), earliest first."""
        q = Appointment.query.filter(
            Appointment.car_id == car_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.start_date < end,
            Appointment.end_date > start,
        )
        if exclude_id is not None:
            q = q.filter(Appointment.id != exclude_id)
        return q.order_by(Appointment.start_date.asc()).all()

    @staticmethod
    def is_car_available(car_id, start: datetime, end: datetime, exclude_id=None) -> bool:
        car = AppointmentService._car(car_id)
        if not car or not car.is_available:
            return False
        return not AppointmentService.find_conflicts(car.id, start, end, exclude_id)

    @staticmethod
    def available_slots(car_id, window_start: Optional[datetime] = None,
                        window_end: Optional[datetime] = None) -> List[TimeSlot]:
        """
        Free gaps inside [window_start, window_end) between the car's bookings.
        Defaults to today 00:00 UTC plus SLOT_WINDOW_DAYS.
        """
        car = AppointmentService._car(car_id)
        if not car or not car.is_available:
            return []
        window_start = window_start or start_of_day(utcnow())
        window_end = window_end or window_start + timedelta(days=SLOT_WINDOW_DAYS)
        if window_end <= window_start:
            return []

        slots = []
        current = window_start
        for appt in AppointmentService.find_conflicts(car.id, window_start, window_end):
            if appt.start_date > current:
                slots.append(TimeSlot(current, appt.start_date))
            current = max(current, appt.end_date)
        if current < window_end:
            slots.append(TimeSlot(current, window_end))
        return slots

    @staticmethod
    def appointments_in_range(start: datetime, end: datetime) -> List[Appointment]:
        return (Appointment.query
                .filter(Appointment.start_date <= end,
                        Appointment.end_date >= start,
                        Appointment.status != AppointmentStatus.CANCELLED)
                .order_by(Appointment.start_date.asc())
                .all())

    # -------- pricing --------
    @staticmethod
    def quote(car: Car, start: datetime, end: datetime,
              promotion: Optional[Promotion] = None,
              subscription: Optional[Subscription] = None,
              now: Optional[datetime] = None,
              already_booked: bool = False) -> PriceQuote:
        """
        Subscription and promotion discounts are both percentages of the base
        price and are summed; the sum is clamped to the base price so a total
        is never negative.

        `already_booked` re-prices offers a booking already holds: the
        promotion was counted against its cap when the booking was made, so
        only the EV rule is checked again, and the subscription applies even
        if the plan has since been switched off.
        """
        days = rental_days(start, end)
        rate = float(car.daily_rate or 0)
        base = rate * days
        promo_discount = 0.0
        if already_booked:
            sub_discount = percentage_of(base, subscription.discount_percentage) if subscription else 0.0
            if promotion is not None and (car.is_electric or not promotion.is_ev_only):
                promo_discount = PromotionService.promotion_discount(promotion, base)
        else:
            sub_discount = SubscriptionService.subscription_discount(subscription, base)
            if PromotionService.is_applicable(promotion, car.is_electric, now):
                promo_discount = PromotionService.promotion_discount(promotion, base)
        return PriceQuote(
            days=days,
            daily_rate=round2(rate),
            base_price=round2(base),
            subscription_discount=round2(sub_discount),
            promotion_discount=round2(promo_discount),
        )

    @staticmethod
    def calculate_price(car_id, start: datetime, end: datetime,
                        promotion_id=None, subscription_id=None) -> float:
        car = AppointmentService._car(car_id)
        if not car:
            return 0.0
        promotion = db.session.get(Promotion, to_int_safe(promotion_id)) if to_int_safe(promotion_id) else None
        subscription = SubscriptionService.resolve_active(subscription_id)
        return AppointmentService.quote(car, start, end, promotion, subscription).total_price

    # -------- validation --------
    @staticmethod
    def validate_booking_window(start, end, now: Optional[datetime] = None):
        """Return parsed (start, end) or raise InvalidDateRangeError."""
        start_dt = parse_datetime(start)
        end_dt = parse_datetime(end)
        if start_dt is None:
            raise InvalidDateRangeError("Pickup date is required.")
        if end_dt is None:
            raise InvalidDateRangeError("Return date is required.")
        if end_dt <= start_dt:
            raise InvalidDateRangeError("Return date must be after pickup date.")
        cutoff = (now or utcnow()) - timedelta(minutes=PAST_TOLERANCE_MINUTES)
        if start_dt < cutoff:
            raise InvalidDateRangeError("Pickup date cannot be in the past.")
        if end_dt < cutoff:
            raise InvalidDateRangeError("Return date cannot be in the past.")
        if end_dt - start_dt < timedelta(hours=MIN_BOOKING_HOURS):
            raise InvalidDateRangeError("Rental duration must be at least 1 hour.")
        return start_dt, end_dt

    @staticmethod
    def _conflict_message(car: Car, conflicts: List[Appointment]) -> str:
        first = conflicts[0]
        return (f"{car.display_name} is not available for the selected dates. "
                f"It's already booked from {first.start_date.strftime(DISPLAY_FMT)} "
                f"to {first.end_date.strftime(DISPLAY_FMT)}. "
                f"Please choose different dates or select another vehicle.")

    @staticmethod
    def _check_car(car: Optional[Car]) -> Optional[str]:
        if car is None:
            return "The selected vehicle does not exist. Please select another vehicle."
        if not car.is_available:
            return f"The vehicle '{car.display_name}' is currently unavailable. Please select another vehicle."
        return None

    # -------- customer commands --------
    @staticmethod
    def create_appointment(user_id, car_id, start, end,
                           promotion_code: Optional[str] = None,
                           promotion_id=None,
                           subscription_id=None,
                           special_requests: Optional[str] = None,
                           now: Optional[datetime] = None):
        """
        Book a car for the user.
        - window must be valid and in the future
        - no overlap with a non-cancelled booking of the same car
        - an inactive subscription is dropped silently, a bad promotion code is an error
        The booking starts as Pending until it is paid.
        """
        if not to_int_safe(car_id):
            return False, "Please select a vehicle to continue with your booking.", None
        car = AppointmentService._car(car_id)
        err = AppointmentService._check_car(car)
        if err:
            return False, err, None

        try:
            start_dt, end_dt = AppointmentService.validate_booking_window(start, end, now)
        except InvalidDateRangeError as e:
            return False, e.message, None

        requests_text = clean(special_requests) or None
        if requests_text and len(requests_text) > 500:
            return False, "Special requests cannot exceed 500 characters.", None

        conflicts = AppointmentService.find_conflicts(car.id, start_dt, end_dt)
        if conflicts:
            return False, AppointmentService._conflict_message(car, conflicts), None

        user = db.session.get(User, to_int_safe(user_id)) if to_int_safe(user_id) else None
        if not user:
            return False, "User not found. Please login again.", None

        subscription = SubscriptionService.resolve_active(subscription_id)

        promotion = None
        if clean(promotion_code):
            promotion = PromotionService.get_by_code(promotion_code)
            if not PromotionService.is_applicable(promotion, car.is_electric, now):
                return False, (f"The promotion code '{clean(promotion_code)}' is invalid or expired. "
                               f"Please check and try again."), None
        elif to_int_safe(promotion_id):
            candidate = db.session.get(Promotion, to_int_safe(promotion_id))
            if PromotionService.is_applicable(candidate, car.is_electric, now):
                promotion = candidate

        q = AppointmentService.quote(car, start_dt, end_dt, promotion, subscription, now)
        appt = Appointment(
            car_id=car.id,
            user_id=user.id,
            customer_name=user.full_name or user.email,
            customer_email=user.email,
            customer_phone=user.phone,
            start_date=start_dt,
            end_date=end_dt,
            special_requests=requests_text,
            status=AppointmentStatus.PENDING,
            total_price=q.total_price,
            discount_amount=q.discount_amount or None,
            promotion_id=promotion.id if promotion else None,
            subscription_id=subscription.id if subscription else None,
            created_at=now or utcnow(),
        )
        db.session.add(appt)
        if promotion:
            promotion.current_uses = (promotion.current_uses or 0) + 1

        NotificationService.notify(
            user.id,
            "Booking Created",
            f"Your booking for {car.display_name} has been created successfully. "
            f"Please proceed with payment to confirm your booking.",
            NotificationType.SUCCESS,
            commit=False,
        )
        db.session.commit()
        logger.info("appointment %s created for car %s by user %s", appt.id, car.id, user.id)
        return True, "Booking created successfully! Please proceed with payment to confirm your booking.", appt

    @staticmethod
    def update_appointment(appointment_id, now: Optional[datetime] = None, **changes):
        """Change dates/car/offers on an existing booking and re-price it."""
        appt = AppointmentService.get(appointment_id)
        if appt.status in (AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED):
            return False, f"A {appt.status.lower()} booking cannot be changed.", appt

        car = AppointmentService._car(changes.get("car_id", appt.car_id))
        err = AppointmentService._check_car(car)
        if err:
            return False, err, appt
        try:
            start_dt, end_dt = AppointmentService.validate_booking_window(
                changes.get("start_date", appt.start_date), changes.get("end_date", appt.end_date), now)
        except InvalidDateRangeError as e:
            return False, e.message, appt

        conflicts = AppointmentService.find_conflicts(car.id, start_dt, end_dt, exclude_id=appt.id)
        if conflicts:
            return False, AppointmentService._conflict_message(car, conflicts), appt

        subscription = appt.subscription
        if "subscription_id" in changes and to_int_safe(changes["subscription_id"]) != appt.subscription_id:
            subscription = SubscriptionService.resolve_active(changes["subscription_id"])
        promotion = appt.promotion
        new_promotion = None
        if "promotion_id" in changes and to_int_safe(changes["promotion_id"]) != appt.promotion_id:
            pid = to_int_safe(changes["promotion_id"])
            promotion = db.session.get(Promotion, pid) if pid else None
            if not PromotionService.is_applicable(promotion, car.is_electric, now):
                promotion = None
            new_promotion = promotion

        q = AppointmentService.quote(car, start_dt, end_dt, promotion, subscription, now, already_booked=True)
        appt.car_id = car.id
        appt.start_date = start_dt
        appt.end_date = end_dt
        if "special_requests" in changes:
            appt.special_requests = clean(changes["special_requests"])[:500] or None
        appt.subscription_id = subscription.id if subscription else None
        appt.promotion_id = promotion.id if promotion else None
        appt.total_price = q.total_price
        appt.discount_amount = q.discount_amount or None
        if new_promotion is not None:
            new_promotion.current_uses = (new_promotion.current_uses or 0) + 1
        appt.updated_at = now or utcnow()
        db.session.commit()
        return True, "Booking updated successfully.", appt

    @staticmethod
    def delete_appointment(appointment_id):
        appt = AppointmentService.get(appointment_id)
        db.session.delete(appt)
        db.session.commit()
        logger.info("appointment %s deleted", appointment_id)
        return True, "Booking deleted"

    @staticmethod
    def list_for_user(user_id, view: Optional[str] = CustomerView.ACTIVE):
        q = Appointment.query.filter(Appointment.user_id == user_id)
        view = (view or CustomerView.ACTIVE).strip().capitalize()
        if view == CustomerView.ACTIVE:
            q = q.filter(Appointment.status != AppointmentStatus.CANCELLED)
        elif view == CustomerView.HISTORY:
            q = q.filter(Appointment.status.in_([AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED]))
        return q.order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    @staticmethod
    def cancel_by_customer(appointment_id, user_id, now: Optional[datetime] = None):
        """
        Customer cancellation.
        Pickup at least FULL_REFUND_HOURS away: a completed payment is fully refunded,
        otherwise it is marked partially refunded.
        """
        appt = AppointmentService.get_for_user(appointment_id, user_id)
        if appt.status == AppointmentStatus.CANCELLED:
            return False, "This booking is already cancelled.", appt
        if appt.status == AppointmentStatus.COMPLETED:
            return False, "Cannot cancel a completed booking.", appt

        now = now or utcnow()
        hours_until_pickup = (appt.start_date - now).total_seconds() / 3600.0
        full_refund = hours_until_pickup >= FULL_REFUND_HOURS

        appt.status = AppointmentStatus.CANCELLED
        appt.updated_at = now
        payment = appt.payments.filter(Payment.status == PaymentStatus.COMPLETED).first()
        if payment:
            payment.status = PaymentStatus.REFUNDED if full_refund else PaymentStatus.PARTIALLY_REFUNDED
            payment.updated_at = now

        car_name = appt.car.display_name if appt.car else "your booked vehicle"
        if full_refund:
            note = f"Your booking for {car_name} has been cancelled. A full refund will be processed if payment was made."
            msg = "Booking cancelled successfully. A full refund will be processed if payment was made."
        else:
            note = f"Your booking for {car_name} has been cancelled. Please check refund policy for details."
            msg = "Booking cancelled successfully. Please check cancellation policy for refund details."
        NotificationService.notify(appt.user_id, "Booking Cancelled", note, NotificationType.INFO, commit=False)
        db.session.commit()
        logger.info("appointment %s cancelled by customer (full_refund=%s)", appt.id, full_refund)
        return True, msg, appt

    @staticmethod
    def rebook_target(appointment_id, user_id) -> int:
        """Car id to pre-fill a new booking from a previous one."""
        appt = AppointmentService.get_for_user(appointment_id, user_id)
        if not appt.car:
            raise CarNotFoundError("The vehicle from this booking is no longer available.")
        return appt.car_id

    # -------- back office --------
    @staticmethod
    def list_orders(status: Optional[str] = None, search: Optional[str] = None):
        """All bookings for staff; 'All' hides cancelled ones, search matches customer or car."""
        q = Appointment.query.outerjoin(Car, Appointment.car_id == Car.id)
        label = _status_label(status or "")
        if label:
            q = q.filter(Appointment.status == label)
        else:
            q = q.filter(Appointment.status != AppointmentStatus.CANCELLED)
        term = clean(search)
        if term:
            like = f"%{term.lower()}%"
            q = q.filter(db.or_(
                db.func.lower(Appointment.customer_name).like(like),
                db.func.lower(Appointment.customer_email).like(like),
                db.func.lower(Car.make).like(like),
                db.func.lower(Car.model).like(like),
            ))
        return q.order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()

    @staticmethod
    def _restore_car_if_free(appt: Appointment) -> None:
        car = appt.car
        if car is None or car.is_available:
            return
        others = Appointment.query.filter(
            Appointment.car_id == car.id,
            Appointment.id != appt.id,
            Appointment.status.notin_([AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED]),
            Appointment.start_date <= appt.end_date,
            Appointment.end_date >= appt.start_date,
        ).count()
        if not others:
            car.is_available = True

    @staticmethod
    def update_status(appointment_id, status: str, now: Optional[datetime] = None, detailed: bool = True):
        """Staff status change, with refund handling on cancellation and a customer notification."""
        label = _status_label(status)
        if not label:
            return False, f"Invalid status '{status}'", None
        appt = AppointmentService.get(appointment_id)
        now = now or utcnow()
        old = appt.status
        appt.status = label
        appt.updated_at = now

        if label == AppointmentStatus.CANCELLED and old != AppointmentStatus.CANCELLED:
            AppointmentService._restore_car_if_free(appt)
            payment = appt.payments.filter(Payment.status == PaymentStatus.COMPLETED).first()
            if payment:
                payment.status = PaymentStatus.REFUNDED
                payment.updated_at = now
                NotificationService.notify(
                    appt.user_id, "Refund Processed",
                    f"A refund of RM {payment.amount:,.2f} has been processed for your cancelled booking.",
                    NotificationType.SUCCESS, commit=False)

        car_name = appt.car.display_name if appt.car else "your booked vehicle"
        if label == AppointmentStatus.COMPLETED and detailed:
            message = (f"Your booking for {car_name} has been completed. "
                       f"Share your experience by leaving a review!")
        else:
            message = f"Your booking for {car_name} has been {label.lower()}."
        if label in (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED):
            ntype = NotificationType.SUCCESS
        elif label == AppointmentStatus.CANCELLED:
            ntype = NotificationType.DANGER
        else:
            ntype = NotificationType.INFO
        NotificationService.notify(appt.user_id, f"Booking {label}", message, ntype, commit=False)

        db.session.commit()
        logger.info("appointment %s status %s -> %s", appt.id, old, label)
        return True, f"Order #{appt.id} status updated to {label} successfully!", appt

    @staticmethod
    def batch_update_status(appointment_ids, status: str, now: Optional[datetime] = None):
        if not appointment_ids:
            return False, "No orders selected.", 0
        if not _status_label(status):
            return False, f"Invalid status '{status}'", 0
        updated = 0
        for raw in appointment_ids or []:
            try:
                ok, _, _ = AppointmentService.update_status(raw, status, now=now, detailed=False)
            except AppointmentNotFoundError:
                logger.warning("batch status update skipped unknown appointment %r", raw)
                continue
            if ok:
                updated += 1
        return True, f"{updated} order(s) updated to {_status_label(status)}.", updated

    @staticmethod
    def calendar_events(start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[dict]:
        """Calendar feed of non-cancelled bookings touching [start, end]."""
        start = start or start_of_day(utcnow()).replace(day=1)
        end = end or start + timedelta(days=42)
        events = []
        for appt in AppointmentService.appointments_in_range(start, end):
            events.append({
                "id": appt.id,
                "title": f"{appt.car.make} {appt.car.model} - {appt.customer_name}" if appt.car else appt.customer_name,
                "start": fmt_dt(appt.start_date),
                "end": fmt_dt(appt.end_date),
                "status": appt.status,
            })
        return events
