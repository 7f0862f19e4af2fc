from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..exceptions import PromotionNotFoundError, ValidationError
from ..extensions import db
from ..models import Car, Promotion
from .common import utcnow, parse_datetime, to_float_safe, to_int_safe, to_bool, clean, percentage_of, round2

logger = logging.getLogger(__name__)


class PromotionService:
    """Promotion codes: CRUD, validity rules and discount maths."""

    @staticmethod
    def get(promotion_id) -> Promotion:
        p = db.session.get(Promotion, to_int_safe(promotion_id)) if to_int_safe(promotion_id) else None
        if not p:
            raise PromotionNotFoundError()
        return p

    @staticmethod
    def get_by_code(code: Optional[str]) -> Optional[Promotion]:
        code = clean(code).upper()
        if not code:
            return None
        return Promotion.query.filter(db.func.upper(Promotion.code) == code).first()

    @staticmethod
    def list_all():
        return Promotion.query.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()

    @staticmethod
    def list_active(now: Optional[datetime] = None):
        now = now or utcnow()
        q = Promotion.query.filter(
            Promotion.is_active.is_(True),
            Promotion.start_date <= now,
            Promotion.end_date >= now,
            db.or_(Promotion.max_uses.is_(None), Promotion.current_uses < Promotion.max_uses),
        )
        return q.order_by(Promotion.discount_percentage.desc()).all()

    # -------- rules --------
    @staticmethod
    def is_applicable(promotion: Optional[Promotion], is_electric: bool,
                      now: Optional[datetime] = None) -> bool:
        """Active, inside its date window, EV rule satisfied and still under its usage cap."""
        if promotion is None or not promotion.is_active:
            return False
        now = now or utcnow()
        if promotion.start_date > now or promotion.end_date < now:
            return False
        if promotion.is_ev_only and not is_electric:
            return False
        if promotion.max_uses is not None and (promotion.current_uses or 0) >= promotion.max_uses:
            return False
        return True

    @staticmethod
    def validate_code(code: Optional[str], is_electric: bool, now: Optional[datetime] = None) -> bool:
        return PromotionService.is_applicable(PromotionService.get_by_code(code), is_electric, now)

    @staticmethod
    def promotion_discount(promotion: Promotion, base_price: float) -> float:
        amount = percentage_of(base_price, promotion.discount_percentage)
        if promotion.max_discount_amount is not None and amount > promotion.max_discount_amount:
            amount = float(promotion.max_discount_amount)
        return amount

    @staticmethod
    def check_code_for_car(code: Optional[str], car_id, now: Optional[datetime] = None) -> dict:
        """Answer for the booking form's live "apply code" box."""
        if not clean(code):
            return {"valid": False, "message": "Code is required"}
        car = db.session.get(Car, to_int_safe(car_id)) if to_int_safe(car_id) else None
        if not car:
            return {"valid": False, "message": "Car not found"}
        promotion = PromotionService.get_by_code(code)
        if not promotion:
            return {"valid": False, "message": "Invalid code"}
        if not PromotionService.is_applicable(promotion, car.is_electric, now):
            return {"valid": False, "message": "Invalid or expired code"}
        pct = promotion.discount_percentage
        return {
            "valid": True,
            "discount": pct,
            "max_discount_amount": promotion.max_discount_amount,
            "promotion_id": promotion.id,
            "message": f"Valid! {pct:g}% discount applied.",
        }

    # -------- admin CRUD --------
    @staticmethod
    def _apply(promotion: Promotion, data: dict) -> None:
        name = clean(data.get("name", promotion.name))
        code = clean(data.get("code", promotion.code)).upper()
        if not name:
            raise ValidationError("Promotion name is required")
        if not code:
            raise ValidationError("Promotion code is required")
        clash = Promotion.query.filter(db.func.upper(Promotion.code) == code).first()
        if clash and clash.id != promotion.id:
            raise ValidationError(f"Promotion code '{code}' already exists")

        pct = to_float_safe(data.get("discount_percentage", promotion.discount_percentage))
        if pct is None or not 0 <= pct <= 100:
            raise ValidationError("Discount percentage must be between 0 and 100")

        cap = data.get("max_discount_amount", promotion.max_discount_amount)
        cap = to_float_safe(cap) if cap not in (None, "") else None
        if cap is not None and cap < 0:
            raise ValidationError("Max discount amount cannot be negative")

        start = parse_datetime(data.get("start_date", promotion.start_date))
        end = parse_datetime(data.get("end_date", promotion.end_date))
        if not start or not end:
            raise ValidationError("Start and end dates are required")
        if end < start:
            raise ValidationError("End date must be after start date")

        max_uses = data.get("max_uses", promotion.max_uses)
        max_uses = to_int_safe(max_uses) if max_uses not in (None, "") else None
        if max_uses is not None and max_uses < 1:
            raise ValidationError("Max uses must be at least 1")

        promotion.name = name
        promotion.code = code
        promotion.description = clean(data.get("description", promotion.description)) or None
        promotion.discount_percentage = pct
        promotion.max_discount_amount = round2(cap) if cap is not None else None
        promotion.start_date = start
        promotion.end_date = end
        promotion.max_uses = max_uses
        if "is_active" in data:
            promotion.is_active = to_bool(data["is_active"])
        if "is_ev_only" in data:
            promotion.is_ev_only = to_bool(data["is_ev_only"])

    @staticmethod
    def create(data: dict):
        promotion = Promotion(is_active=True, is_ev_only=False, current_uses=0)
        try:
            PromotionService._apply(promotion, data)
        except ValidationError as e:
            return False, e.message, None
        db.session.add(promotion)
        db.session.commit()
        logger.info("promotion %s created", promotion.code)
        return True, "Promotion created successfully!", promotion

    @staticmethod
    def update(promotion_id, data: dict):
        promotion = PromotionService.get(promotion_id)
        try:
            PromotionService._apply(promotion, data)
        except ValidationError as e:
            db.session.rollback()
            return False, e.message, promotion
        promotion.updated_at = utcnow()
        db.session.commit()
        return True, "Promotion updated successfully!", promotion

    @staticmethod
    def delete(promotion_id):
        promotion = PromotionService.get(promotion_id)
        for appt in promotion.appointments:
            appt.promotion_id = None
        db.session.delete(promotion)
        db.session.commit()
        logger.info("promotion %s deleted", promotion_id)
        return True, "Promotion deleted successfully!"

    @staticmethod
    def toggle_status(promotion_id):
        promotion = PromotionService.get(promotion_id)
        promotion.is_active = not promotion.is_active
        promotion.updated_at = utcnow()
        db.session.commit()
        state = "activated" if promotion.is_active else "deactivated"
        return True, f"Promotion {state} successfully!", promotion
