from ..extensions import db
from ..services.common import utcnow, fmt_dt, round2
from ..utils.constants import AppointmentStatus, PaymentStatus


class Appointment(db.Model):
    """A booking of one car over [start_date, end_date) with its computed price."""
    __tablename__ = "appointments"

    id = db.Column(db.Integer, primary_key=True)
    car_id = db.Column(db.Integer, db.ForeignKey("cars.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True)

    customer_name = db.Column(db.String(200), nullable=False, default="")
    customer_email = db.Column(db.String(255), nullable=False, default="")
    customer_phone = db.Column(db.String(30))

    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    special_requests = db.Column(db.String(500))
    status = db.Column(db.String(20), nullable=False, default=AppointmentStatus.PENDING)

    total_price = db.Column(db.Float, nullable=False, default=0.0)
    discount_amount = db.Column(db.Float)
    promotion_id = db.Column(db.Integer, db.ForeignKey("promotions.id", ondelete="SET NULL"))
    subscription_id = db.Column(db.Integer, db.ForeignKey("subscriptions.id", ondelete="SET NULL"))

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    promotion = db.relationship("Promotion", backref="appointments")
    subscription = db.relationship("Subscription", backref="appointments")
    payments = db.relationship(
        "Payment", backref="appointment", lazy="dynamic", cascade="all, delete-orphan",
        order_by="Payment.id",
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED

    @property
    def latest_payment(self):
        return self.payments.order_by(None).order_by(Payment.id.desc()).first()

    def to_dict(self, with_payment: bool = False) -> dict:
        out = {
            "id": self.id,
            "car_id": self.car_id,
            "car": self.car.display_name if self.car else None,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "start_date": fmt_dt(self.start_date),
            "end_date": fmt_dt(self.end_date),
            "special_requests": self.special_requests,
            "status": self.status,
            "total_price": round2(self.total_price),
            "discount_amount": round2(self.discount_amount) if self.discount_amount else None,
            "promotion_id": self.promotion_id,
            "promotion_code": self.promotion.code if self.promotion else None,
            "subscription_id": self.subscription_id,
            "created_at": fmt_dt(self.created_at),
            "updated_at": fmt_dt(self.updated_at),
        }
        if with_payment:
            p = self.latest_payment
            out["payment"] = p.to_dict() if p else None
        return out


class Payment(db.Model):
    """Simulated payment record; no real gateway is involved."""
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id"), nullable=False, index=True)
    payment_method = db.Column(db.String(50), nullable=False)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(20), nullable=False, default=PaymentStatus.PENDING)
    transaction_id = db.Column(db.String(100))
    payment_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "payment_method": self.payment_method,
            "amount": round2(self.amount),
            "status": self.status,
            "transaction_id": self.transaction_id,
            "payment_date": fmt_dt(self.payment_date),
            "updated_at": fmt_dt(self.updated_at),
        }
