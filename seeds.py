from datetime import timedelta

from car_rental import create_app
from car_rental.extensions import db
from car_rental.models import Car, Category, Promotion, Subscription, User
from car_rental.services.common import utcnow
from car_rental.utils.constants import FuelType, Role
from car_rental.utils.security import generate_hash


def ensure_user(email: str, password: str, role: str, first_name: str, last_name: str):
    """
    Ensure a user with `email` exists.
    - If exists: update password hash and role (idempotent).
    - If not:   create a new user.
    """
    u = User.query.filter_by(email=email).first()
    if u:
        u.password_hash = generate_hash(password)
        u.role = role
        u.is_active = True
    else:
        u = User(email=email, password_hash=generate_hash(password), role=role,
                 first_name=first_name, last_name=last_name)
        db.session.add(u)
    return u


def ensure_category(name: str, description: str):
    c = Category.query.filter_by(name=name).first()
    if not c:
        c = Category(name=name, description=description, is_active=True)
        db.session.add(c)
    return c


def seed_cars(categories: dict):
    if Car.query.first():
        return
    ev = dict(fuel_type=FuelType.ELECTRIC, is_electric=True)
    gas = dict(fuel_type=FuelType.GAS, is_electric=False)
    rows = [
        dict(make="Tesla", model="Model 3", year=2023, license_plate="EV1001", color="White",
             daily_rate=89.99, category=categories["Sedan"], battery_capacity=75, range_km=491,
             charging_time=8, city="Kuala Lumpur", **ev),
        dict(make="Tesla", model="Model Y", year=2023, license_plate="EV1002", color="Black",
             daily_rate=99.99, category=categories["SUV"], battery_capacity=75, range_km=455,
             charging_time=8, city="Petaling Jaya", state="Selangor", **ev),
        dict(make="Nissan", model="Leaf", year=2022, license_plate="EV1003", color="Blue",
             daily_rate=69.99, category=categories["Hatchback"], battery_capacity=62, range_km=364,
             charging_time=11, city="Kuala Lumpur", **ev),
        dict(make="Toyota", model="Camry", year=2022, license_plate="WXY1234", color="Silver",
             daily_rate=59.99, category=categories["Sedan"], city="Kuala Lumpur", **gas),
        dict(make="Honda", model="Civic", year=2021, license_plate="WXY5678", color="Red",
             daily_rate=49.99, category=categories["Sedan"], city="George Town", state="Penang", **gas),
        dict(make="BMW", model="iX", year=2024, license_plate="EV2001", color="Grey",
             daily_rate=149.99, category=categories["SUV"], battery_capacity=105, range_km=630,
             charging_time=11, city="Kuala Lumpur", **ev),
    ]
    for row in rows:
        category = row.pop("category")
        row.setdefault("state", "Kuala Lumpur")
        db.session.add(Car(category_id=category.id, is_available=True,
                           description=f"{row['year']} {row['make']} {row['model']}", **row))


def seed_offers():
    if not Subscription.query.first():
        db.session.add_all([
            Subscription(name="Basic Plan", description="Save on every rental", monthly_price=29.99,
                         discount_percentage=5, max_rentals_per_month=2, max_days_per_rental=3),
            Subscription(name="Premium Plan", description="For regular drivers", monthly_price=59.99,
                         discount_percentage=15, max_rentals_per_month=5, max_days_per_rental=7,
                         includes_ev_priority=True),
            Subscription(name="Elite Plan", description="Unlimited freedom", monthly_price=99.99,
                         discount_percentage=25, max_rentals_per_month=10, max_days_per_rental=14,
                         includes_ev_priority=True),
        ])
    if not Promotion.query.first():
        now = utcnow()
        db.session.add_all([
            Promotion(name="Summer Special", code="SUMMER20", discount_percentage=20,
                      max_discount_amount=100, start_date=now, end_date=now + timedelta(days=90)),
            Promotion(name="EV Weekend", code="EVWEEKEND", discount_percentage=30,
                      max_discount_amount=150, start_date=now, end_date=now + timedelta(days=60),
                      is_ev_only=True),
            Promotion(name="New Customer", code="WELCOME15", discount_percentage=15,
                      max_discount_amount=75, start_date=now, end_date=now + timedelta(days=365),
                      max_uses=500),
        ])


def main():
    app = create_app()
    with app.app_context():
        # ---- Manager / Staff / Customer demo accounts ----
        ensure_user("manager@carrental.local", "Manager123", Role.MANAGER, "Admin", "Manager")
        ensure_user("staff@carrental.local", "Staff123", Role.STAFF, "John", "Staff")
        ensure_user("customer@carrental.local", "Customer123", Role.CUSTOMER, "Demo", "Customer")

        categories = {name: ensure_category(name, desc) for name, desc in (
            ("SUV", "Sport Utility Vehicles"),
            ("Sedan", "Four-door passenger cars"),
            ("Hatchback", "Compact cars with rear hatch"),
            ("Van", "Large passenger or cargo vehicles"),
        )}
        db.session.flush()

        seed_cars(categories)
        seed_offers()
        db.session.commit()

        print("Seed complete.")
        print("Manager login:   manager@carrental.local / Manager123")
        print("Staff login:     staff@carrental.local / Staff123")
        print("Customer login:  customer@carrental.local / Customer123")


if __name__ == "__main__":
    main()
