from __future__ import annotations

import logging
from typing import Optional

from ..exceptions import SubscriptionNotFoundError, ValidationError
from ..extensions import db
from ..models import Subscription
from .common import utcnow, to_float_safe, to_int_safe, to_bool, clean, percentage_of, round2

logger = logging.getLogger(__name__)


class SubscriptionService:
    """Membership plans; an active plan takes a flat percentage off bookings."""

    @staticmethod
    def get(subscription_id) -> Subscription:
        sid = to_int_safe(subscription_id)
        s = db.session.get(Subscription, sid) if sid else None
        if not s:
            raise SubscriptionNotFoundError()
        return s

    @staticmethod
    def resolve_active(subscription_id) -> Optional[Subscription]:
        """Return the plan only when it exists and is active."""
        sid = to_int_safe(subscription_id)
        if not sid:
            return None
        s = db.session.get(Subscription, sid)
        return s if s and s.is_active else None

    @staticmethod
    def list_all():
        return Subscription.query.order_by(Subscription.monthly_price.asc()).all()

    @staticmethod
    def list_active():
        return (Subscription.query.filter_by(is_active=True)
                .order_by(Subscription.monthly_price.asc()).all())

    @staticmethod
    def subscription_discount(subscription: Optional[Subscription], base_price: float) -> float:
        if subscription is None or not subscription.is_active:
            return 0.0
        return percentage_of(base_price, subscription.discount_percentage)

    @staticmethod
    def details(subscription_id) -> dict:
        return SubscriptionService.get(subscription_id).to_dict()

    @staticmethod
    def _apply(s: Subscription, data: dict) -> None:
        name = clean(data.get("name", s.name))
        if not name:
            raise ValidationError("Plan name is required")
        price = to_float_safe(data.get("monthly_price", s.monthly_price))
        if price is None or price < 0:
            raise ValidationError("Monthly price cannot be negative")
        pct = to_float_safe(data.get("discount_percentage", s.discount_percentage))
        if pct is None or not 0 <= pct <= 100:
            raise ValidationError("Discount percentage must be between 0 and 100")
        max_rentals = to_int_safe(data.get("max_rentals_per_month", s.max_rentals_per_month))
        if max_rentals is None or max_rentals < 1:
            raise ValidationError("Max rentals per month must be at least 1")
        max_days = to_int_safe(data.get("max_days_per_rental", s.max_days_per_rental))
        if max_days is None or max_days < 1:
            raise ValidationError("Max days per rental must be at least 1")

        s.name = name
        s.description = clean(data.get("description", s.description)) or None
        s.monthly_price = round2(price)
        s.discount_percentage = pct
        s.max_rentals_per_month = max_rentals
        s.max_days_per_rental = max_days
        if "includes_ev_priority" in data:
            s.includes_ev_priority = to_bool(data["includes_ev_priority"])
        if "is_active" in data:
            s.is_active = to_bool(data["is_active"])

    @staticmethod
    def create(data: dict):
        s = Subscription(is_active=True, includes_ev_priority=False)
        try:
            SubscriptionService._apply(s, data)
        except ValidationError as e:
            return False, e.message, None
        db.session.add(s)
        db.session.commit()
        logger.info("subscription plan %r created", s.name)
        return True, "Subscription plan created successfully!", s

    @staticmethod
    def update(subscription_id, data: dict):
        s = SubscriptionService.get(subscription_id)
        try:
            SubscriptionService._apply(s, data)
        except ValidationError as e:
            db.session.rollback()
            return False, e.message, s
        s.updated_at = utcnow()
        db.session.commit()
        return True, "Subscription plan updated successfully!", s

    @staticmethod
    def delete(subscription_id):
        s = SubscriptionService.get(subscription_id)
        for appt in s.appointments:
            appt.subscription_id = None
        db.session.delete(s)
        db.session.commit()
        return True, "Subscription plan deleted successfully!"

    @staticmethod
    def toggle_status(subscription_id):
        s = SubscriptionService.get(subscription_id)
        s.is_active = not s.is_active
        s.updated_at = utcnow()
        db.session.commit()
        state = "activated" if s.is_active else "deactivated"
        return True, f"Subscription plan {state} successfully!", s
