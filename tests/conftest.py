import sys, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from datetime import timedelta

import pytest

from car_rental import create_app
from car_rental.config import TestConfig
from car_rental.extensions import db as _db
from car_rental.models import Appointment, Car, Promotion, Subscription, User
from car_rental.services.common import start_of_day, utcnow
from car_rental.utils.constants import AppointmentStatus, FuelType, Role
from car_rental.utils.security import generate_hash

PASSWORD = "Secret123"


@pytest.fixture
def app(tmp_path):
    """Fresh app with its own in-memory database for every test."""

    class Cfg(TestConfig):
        UPLOAD_FOLDER = str(tmp_path / "uploads")

    app = create_app(Cfg)
    with app.app_context():
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def day0():
    """Midnight ten days from now: a safe future base for bookings."""
    return start_of_day(utcnow()) + timedelta(days=10)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role=Role.CUSTOMER, email=None, active=True, **kw):
        counter["n"] += 1
        u = User(
            email=email or f"user{counter['n']}@example.com",
            password_hash=generate_hash(PASSWORD),
            first_name=kw.pop("first_name", "Test"),
            last_name=kw.pop("last_name", f"User{counter['n']}"),
            role=role,
            is_active=active,
            **kw,
        )
        db.session.add(u)
        db.session.commit()
        return u

    return _make


@pytest.fixture
def make_car(db):
    counter = {"n": 0}

    def _make(make="Toyota", model="Camry", daily_rate=100.0, electric=False, **kw):
        counter["n"] += 1
        c = Car(
            make=make,
            model=model,
            year=kw.pop("year", 2022),
            license_plate=kw.pop("license_plate", f"TST{counter['n']:04d}"),
            daily_rate=daily_rate,
            fuel_type=FuelType.ELECTRIC if electric else FuelType.GAS,
            is_electric=electric,
            is_available=kw.pop("is_available", True),
            state=kw.pop("state", "Kuala Lumpur"),
            **kw,
        )
        db.session.add(c)
        db.session.commit()
        return c

    return _make


@pytest.fixture
def make_booking(db):
    """Insert an appointment directly, bypassing booking validation (e.g. for past bookings)."""

    def _make(car, user, start, end, status=AppointmentStatus.PENDING, total=100.0, created_at=None):
        a = Appointment(
            car_id=car.id,
            user_id=user.id if user else None,
            customer_name=user.full_name if user else "Walk-in",
            customer_email=user.email if user else "walkin@example.com",
            start_date=start,
            end_date=end,
            status=status,
            total_price=total,
            created_at=created_at or utcnow(),
        )
        db.session.add(a)
        db.session.commit()
        return a

    return _make


@pytest.fixture
def make_promotion(db):
    def _make(code="SAVE10", pct=10.0, cap=None, ev_only=False, max_uses=None, current_uses=0,
              active=True, start=None, end=None):
        now = utcnow()
        p = Promotion(
            name=f"Promo {code}",
            code=code,
            discount_percentage=pct,
            max_discount_amount=cap,
            start_date=start or now - timedelta(days=1),
            end_date=end or now + timedelta(days=60),
            is_active=active,
            is_ev_only=ev_only,
            max_uses=max_uses,
            current_uses=current_uses,
        )
        db.session.add(p)
        db.session.commit()
        return p

    return _make


@pytest.fixture
def make_subscription(db):
    def _make(name="Premium", pct=15.0, price=59.99, active=True):
        s = Subscription(name=name, monthly_price=price, discount_percentage=pct,
                         max_rentals_per_month=5, max_days_per_rental=7, is_active=active)
        db.session.add(s)
        db.session.commit()
        return s

    return _make


@pytest.fixture
def login(client):
    def _login(user, password=PASSWORD):
        r = client.post("/login", json={"email": user.email, "password": password})
        assert r.status_code == 200, r.get_json()
        return r

    return _login
