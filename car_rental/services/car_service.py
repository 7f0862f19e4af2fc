from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from ..exceptions import CarNotFoundError, ValidationError
from ..extensions import db
from ..models import Appointment, Car, Category, Review
from ..utils.constants import (
    AppointmentStatus,
    DEFAULT_MAX_PRICE,
    DEFAULT_MIN_PRICE,
    DEFAULT_STATE,
    FuelType,
    MAX_EV_COMPARE,
    PLACEHOLDER,
    SLOT_WINDOW_DAYS,
    SortOrder,
)
from .appointment_service import AppointmentService
from .common import (
    _lc,
    clean,
    overlap,
    parse_datetime,
    round2,
    start_of_day,
    to_bool,
    to_float_safe,
    to_int_safe,
    utcnow,
)
from .favorite_service import FavoriteService
from .review_service import ReviewService
from .upload_service import UploadService

logger = logging.getLogger(__name__)


class CarService:
    """Vehicle catalogue: search, details, EV hub and fleet management."""

    @staticmethod
    def get(car_id) -> Car:
        cid = to_int_safe(car_id)
        car = db.session.get(Car, cid) if cid else None
        if car is None:
            raise CarNotFoundError(f"Error: car with ID '{car_id}' not found")
        return car

    @staticmethod
    def average_ratings(car_ids: Iterable[int]) -> dict:
        """{car_id: (average approved rating, approved review count)}."""
        ids = list(car_ids)
        if not ids:
            return {}
        rows = (db.session.query(Review.car_id, db.func.avg(Review.rating), db.func.count(Review.id))
                .filter(Review.car_id.in_(ids), Review.is_approved.is_(True))
                .group_by(Review.car_id)
                .all())
        return {cid: (round(float(avg), 1), int(cnt)) for cid, avg, cnt in rows}

    # -------- customer catalogue --------
    @staticmethod
    def search_cars(query: Optional[str] = None,
                    fuel_type: Optional[str] = None,
                    state: Optional[str] = None,
                    category_id=None,
                    min_price=None,
                    max_price=None,
                    sort_by: Optional[str] = None,
                    start=None,
                    end=None) -> List[Car]:
        """
        Filter the available cars.
        - text search is case-insensitive over make/model/description/location/category/year
        - invalid min/max are ignored; swapped when min > max
        - a valid [start, end) window keeps only cars with no overlapping booking
        """
        # 1. Only cars open for booking
        res = Car.query.filter(Car.is_available.is_(True)).all()

        # 2. Free text
        kw = _lc(clean(query))
        if kw:
            def match(c: Car) -> bool:
                fields = (c.make, c.model, c.description, c.display_name, c.city, c.state,
                          c.fuel_type, c.category.name if c.category else None, str(c.year))
                return any(kw in _lc(f) for f in fields)

            res = [c for c in res if match(c)]

        # 3. Fuel
        fuel = _lc(clean(fuel_type))
        if fuel == _lc(FuelType.ELECTRIC):
            res = [c for c in res if c.is_electric]
        elif fuel == _lc(FuelType.GAS):
            res = [c for c in res if not c.is_electric]

        # 4. Location / category
        if clean(state):
            res = [c for c in res if _lc(c.state) == _lc(clean(state))]
        cid = to_int_safe(category_id)
        if cid:
            res = [c for c in res if c.category_id == cid]

        # 5. Price range
        min_val = to_float_safe(min_price)
        max_val = to_float_safe(max_price)
        if (min_val is not None) and (max_val is not None) and (min_val > max_val):
            min_val, max_val = max_val, min_val
        if min_val is not None:
            res = [c for c in res if c.daily_rate >= min_val]
        if max_val is not None:
            res = [c for c in res if c.daily_rate <= max_val]

        # 6. Date window
        start_dt, end_dt = parse_datetime(start), parse_datetime(end)
        if start_dt and end_dt and start_dt < end_dt and res:
            booked = (Appointment.query
                      .filter(Appointment.car_id.in_([c.id for c in res]),
                              Appointment.status != AppointmentStatus.CANCELLED)
                      .all())
            busy = {a.car_id for a in booked if overlap(a.start_date, a.end_date, start_dt, end_dt)}
            res = [c for c in res if c.id not in busy]

        return CarService._sorted(res, sort_by)

    @staticmethod
    def _sorted(cars: List[Car], sort_by: Optional[str]) -> List[Car]:
        key = _lc(clean(sort_by)) or SortOrder.PRICE_ASC
        if key == SortOrder.PRICE_DESC:
            return sorted(cars, key=lambda c: c.daily_rate, reverse=True)
        if key == SortOrder.NAME_ASC:
            return sorted(cars, key=lambda c: (_lc(c.make), _lc(c.model)))
        if key == SortOrder.NAME_DESC:
            return sorted(cars, key=lambda c: (_lc(c.make), _lc(c.model)), reverse=True)
        if key == SortOrder.YEAR_DESC:
            return sorted(cars, key=lambda c: c.year, reverse=True)
        if key == SortOrder.RATING_DESC:
            ratings = CarService.average_ratings(c.id for c in cars)
            return sorted(cars, key=lambda c: ratings.get(c.id, (0.0, 0))[0], reverse=True)
        return sorted(cars, key=lambda c: c.daily_rate)

    @staticmethod
    def filter_options() -> dict:
        """Values for the catalogue filter widgets."""
        categories = Category.query.filter_by(is_active=True).order_by(Category.name).all()
        states = sorted({c.state for c in Car.query.all() if c.state})
        low, high = (db.session.query(db.func.min(Car.daily_rate), db.func.max(Car.daily_rate))
                     .filter(Car.is_available.is_(True)).one())
        return {
            "categories": [c.to_dict() for c in categories],
            "states": states,
            "min_price": round2(low) if low is not None else DEFAULT_MIN_PRICE,
            "max_price": round2(high) if high is not None else DEFAULT_MAX_PRICE,
        }

    @staticmethod
    def car_summary(car_id) -> dict:
        car = CarService.get(car_id)
        avg, count = CarService.average_ratings([car.id]).get(car.id, (0.0, 0))
        out = car.to_dict()
        out.update(average_rating=avg, review_count=count)
        return out

    @staticmethod
    def car_details(car_id, user_id=None, now: Optional[datetime] = None) -> dict:
        """Everything the detail page shows: car, latest reviews, rating, free slots."""
        car = CarService.get(car_id)
        summary = ReviewService.rating_summary(car.id)
        window_start = start_of_day(now or utcnow())
        slots = AppointmentService.available_slots(
            car.id, window_start, window_start + timedelta(days=SLOT_WINDOW_DAYS))
        return {
            "car": car.to_dict(),
            "reviews": [r.to_dict() for r in ReviewService.list_approved(car.id, limit=5)],
            "average_rating": summary["average"],
            "review_count": summary["count"],
            "can_review": bool(user_id) and ReviewService.can_review(car.id, user_id),
            "is_favorited": bool(user_id) and FavoriteService.is_favorited(user_id, car.id),
            "available_slots": [s.to_dict() for s in slots],
        }

    @staticmethod
    def recommendations(limit: int = 6) -> List[Car]:
        """Best rated available cars first, cheaper first on ties."""
        cars = Car.query.filter(Car.is_available.is_(True)).all()
        ratings = CarService.average_ratings(c.id for c in cars)
        cars.sort(key=lambda c: (-ratings.get(c.id, (0.0, 0))[0],
                                 -ratings.get(c.id, (0.0, 0))[1],
                                 c.daily_rate))
        return cars[:max(0, int(limit))]

    # -------- EV hub --------
    @staticmethod
    def electric_cars() -> List[Car]:
        return (Car.query.filter(Car.is_electric.is_(True), Car.is_available.is_(True))
                .order_by(Car.daily_rate.asc()).all())

    @staticmethod
    def compare_electric(car_ids) -> List[Car]:
        ids = [i for i in (to_int_safe(x) for x in (car_ids or [])) if i][:MAX_EV_COMPARE]
        if not ids:
            return []
        cars = Car.query.filter(Car.id.in_(ids), Car.is_electric.is_(True)).all()
        order = {cid: n for n, cid in enumerate(ids)}
        return sorted(cars, key=lambda c: order[c.id])

    # -------- fleet management (staff) --------
    @staticmethod
    def manage_cars(search: Optional[str] = None, status: Optional[str] = None,
                    state: Optional[str] = None) -> List[Car]:
        res = Car.query.order_by(Car.created_at.desc(), Car.id.desc()).all()
        kw = _lc(clean(search))
        if kw:
            res = [c for c in res
                   if kw in _lc(c.make) or kw in _lc(c.model) or kw in _lc(c.license_plate)]
        st = _lc(clean(status))
        if st == "available":
            res = [c for c in res if c.is_available]
        elif st == "unavailable":
            res = [c for c in res if not c.is_available]
        if clean(state):
            res = [c for c in res if _lc(c.state) == _lc(clean(state))]
        return res

    @staticmethod
    def fleet_stats() -> dict:
        cars = Car.query.all()
        return {
            "total": len(cars),
            "available": sum(1 for c in cars if c.is_available),
            "unavailable": sum(1 for c in cars if not c.is_available),
            "electric": sum(1 for c in cars if c.is_electric),
            "gas": sum(1 for c in cars if not c.is_electric),
        }

    @staticmethod
    def _apply(car: Car, data: dict) -> None:
        make = clean(data.get("make", car.make))
        model = clean(data.get("model", car.model))
        plate = clean(data.get("license_plate", car.license_plate)).upper()
        if not make or not model or not plate:
            raise ValidationError("Make, model and license plate are required")

        year = to_int_safe(data.get("year", car.year))
        if year is None or not 1900 <= year <= 2100:
            raise ValidationError("Year must be between 1900 and 2100")
        rate = to_float_safe(data.get("daily_rate", car.daily_rate))
        if rate is None or rate < 0:
            raise ValidationError("Daily rate cannot be negative")

        fuel = clean(data.get("fuel_type", car.fuel_type)) or FuelType.GAS
        match = [f for f in FuelType.ALL if _lc(f) == _lc(fuel)]
        if not match:
            raise ValidationError("Fuel type must be Gas, Electric or Hybrid")
        fuel = match[0]

        clash = Car.query.filter(db.func.upper(Car.license_plate) == plate).first()
        if clash and clash.id != car.id:
            raise ValidationError(f"License plate '{plate}' is already registered")

        cat_id = data.get("category_id", car.category_id)
        cat_id = to_int_safe(cat_id) if cat_id not in (None, "") else None
        if cat_id and not db.session.get(Category, cat_id):
            raise ValidationError("Category not found")

        car.make, car.model, car.license_plate = make, model, plate
        car.year = year
        car.daily_rate = round2(rate)
        car.fuel_type = fuel
        car.is_electric = to_bool(data["is_electric"]) if "is_electric" in data else fuel == FuelType.ELECTRIC
        car.category_id = cat_id
        for field in ("color", "description", "city", "location_address"):
            if field in data:
                setattr(car, field, clean(data[field]) or None)
        if "state" in data:
            car.state = clean(data["state"]) or DEFAULT_STATE
        if "image_url" in data:
            car.image_url = clean(data["image_url"]) or PLACEHOLDER
        if "is_available" in data:
            car.is_available = to_bool(data["is_available"])
        for field, conv in (("battery_capacity", to_float_safe), ("range_km", to_int_safe),
                            ("charging_time", to_float_safe)):
            if field in data:
                setattr(car, field, conv(data[field]))

    @staticmethod
    def create_car(payload: dict):
        car = Car(is_available=True, state=DEFAULT_STATE, image_url=PLACEHOLDER)
        try:
            CarService._apply(car, payload)
        except ValidationError as e:
            return False, e.message, None
        db.session.add(car)
        db.session.commit()
        logger.info("car %s (%s) added to fleet", car.id, car.license_plate)
        return True, f"Vehicle {car.display_name} has been added successfully!", car

    @staticmethod
    def update_car(car_id, payload: dict):
        car = CarService.get(car_id)
        try:
            CarService._apply(car, payload)
        except ValidationError as e:
            db.session.rollback()
            return False, e.message, car
        car.updated_at = utcnow()
        db.session.commit()
        return True, f"Vehicle {car.display_name} has been updated successfully!", car

    @staticmethod
    def toggle_availability(car_id):
        car = CarService.get(car_id)
        car.is_available = not car.is_available
        car.updated_at = utcnow()
        db.session.commit()
        state = "made available" if car.is_available else "made unavailable"
        return True, f"Vehicle {car.display_name} has been {state}.", car

    @staticmethod
    def delete_car(car_id):
        """Delete a car only when no non-cancelled booking references it."""
        car = CarService.get(car_id)
        active = (Appointment.query
                  .filter(Appointment.car_id == car.id,
                          Appointment.status != AppointmentStatus.CANCELLED)
                  .count())
        if active:
            return False, "Cannot delete: active bookings exist"
        for appt in Appointment.query.filter_by(car_id=car.id).all():
            db.session.delete(appt)
        image = car.image_url
        db.session.delete(car)
        db.session.commit()
        if image and image.startswith("/uploads/"):
            UploadService.delete_file(image)
        logger.info("car %s deleted", car_id)
        return True, "Vehicle deleted"

    @staticmethod
    def attach_image(car_id, file):
        car = CarService.get(car_id)
        ok, msg, url = UploadService.save_vehicle_image(file, car.id)
        if not ok:
            return False, msg, car
        old = car.image_url
        car.image_url = url
        car.updated_at = utcnow()
        db.session.commit()
        if old and old.startswith("/uploads/") and old != url:
            UploadService.delete_file(old)
        return True, "Image uploaded", car
