from ..extensions import db
from ..services.common import utcnow, fmt_dt, round2


class Promotion(db.Model):
    """
    Discount code. Applies a percentage of the base price, optionally capped
    by `max_discount_amount`, while active, inside [start_date, end_date],
    under `max_uses` and (when `is_ev_only`) for electric cars only.
    """
    __tablename__ = "promotions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    code = db.Column(db.String(50), unique=True, nullable=False, index=True)
    discount_percentage = db.Column(db.Float, nullable=False, default=0.0)
    max_discount_amount = db.Column(db.Float)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_ev_only = db.Column(db.Boolean, nullable=False, default=False)
    max_uses = db.Column(db.Integer)
    current_uses = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "code": self.code,
            "discount_percentage": self.discount_percentage,
            "max_discount_amount": round2(self.max_discount_amount) if self.max_discount_amount is not None else None,
            "start_date": fmt_dt(self.start_date),
            "end_date": fmt_dt(self.end_date),
            "is_active": self.is_active,
            "is_ev_only": self.is_ev_only,
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
        }


class Subscription(db.Model):
    """Membership plan granting a flat percentage off every booking."""
    __tablename__ = "subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500))
    monthly_price = db.Column(db.Float, nullable=False, default=0.0)
    discount_percentage = db.Column(db.Float, nullable=False, default=0.0)
    max_rentals_per_month = db.Column(db.Integer, nullable=False, default=1)
    max_days_per_rental = db.Column(db.Integer, nullable=False, default=1)
    includes_ev_priority = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "monthly_price": round2(self.monthly_price),
            "discount_percentage": self.discount_percentage,
            "max_rentals_per_month": self.max_rentals_per_month,
            "max_days_per_rental": self.max_days_per_rental,
            "includes_ev_priority": self.includes_ev_priority,
            "is_active": self.is_active,
            "created_at": fmt_dt(self.created_at),
            "updated_at": fmt_dt(self.updated_at),
        }
