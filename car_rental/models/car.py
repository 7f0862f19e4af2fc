from ..extensions import db
from ..services.common import utcnow, fmt_dt, round2
from ..utils.constants import DEFAULT_STATE, FuelType


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.String(500))
    icon_url = db.Column(db.String(255))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    cars = db.relationship("Car", backref="category", lazy="dynamic")

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description,
                "icon_url": self.icon_url, "is_active": self.is_active}


class Car(db.Model):
    """
    A rentable vehicle. `daily_rate` is the listed price per started day
    before any subscription or promotion discount.
    """
    __tablename__ = "cars"

    id = db.Column(db.Integer, primary_key=True)
    make = db.Column(db.String(100), nullable=False)
    model = db.Column(db.String(100), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    license_plate = db.Column(db.String(20), unique=True, nullable=False)
    color = db.Column(db.String(50))
    daily_rate = db.Column(db.Float, nullable=False, default=0.0)
    fuel_type = db.Column(db.String(20), nullable=False, default=FuelType.GAS)
    description = db.Column(db.String(1000))
    image_url = db.Column(db.String(255))
    is_electric = db.Column(db.Boolean, nullable=False, default=False)
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    state = db.Column(db.String(100), default=DEFAULT_STATE)
    city = db.Column(db.String(100))
    location_address = db.Column(db.String(255))
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"))

    # EV specifics
    battery_capacity = db.Column(db.Float)
    range_km = db.Column(db.Integer)
    charging_time = db.Column(db.Float)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime)

    appointments = db.relationship("Appointment", backref="car", lazy="dynamic")
    reviews = db.relationship("Review", backref="car", lazy="dynamic", cascade="all, delete-orphan")
    favorites = db.relationship("Favorite", backref="car", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return f"{self.year} {self.make} {self.model} - {self.license_plate}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "license_plate": self.license_plate,
            "display_name": self.display_name,
            "color": self.color,
            "daily_rate": round2(self.daily_rate),
            "fuel_type": self.fuel_type,
            "description": self.description,
            "image_url": self.image_url,
            "is_electric": self.is_electric,
            "is_available": self.is_available,
            "state": self.state,
            "city": self.city,
            "location_address": self.location_address,
            "category_id": self.category_id,
            "category": self.category.name if self.category else None,
            "battery_capacity": self.battery_capacity,
            "range_km": self.range_km,
            "charging_time": self.charging_time,
            "created_at": fmt_dt(self.created_at),
            "updated_at": fmt_dt(self.updated_at),
        }
