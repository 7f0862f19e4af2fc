import io
import os

import pytest
from werkzeug.datastructures import FileStorage

from car_rental.services.car_service import CarService
from car_rental.services.upload_service import UploadService
from car_rental.utils.constants import PLACEHOLDER


def _form(**over):
    data = {"make": "Proton", "model": "X50", "year": "2024", "license_plate": "wxy 1234",
            "daily_rate": "130", "fuel_type": "gas"}
    data.update(over)
    return data


def test_create_car_defaults(db):
    ok, msg, car = CarService.create_car(_form())
    assert ok, msg
    assert msg == "Vehicle 2024 Proton X50 - WXY 1234 has been added successfully!"
    assert car.license_plate == "WXY 1234"
    assert car.fuel_type == "Gas"
    assert car.is_electric is False
    assert car.is_available is True
    assert car.state == "Kuala Lumpur"
    assert car.image_url == PLACEHOLDER


def test_electric_fuel_marks_car_electric(db):
    ok, _, car = CarService.create_car(_form(fuel_type="Electric", battery_capacity="60",
                                             range_km="420", charging_time="7.5"))
    assert ok
    assert car.is_electric is True
    assert car.range_km == 420
    assert car.charging_time == 7.5


@pytest.mark.parametrize("over,error", [
    ({"make": ""}, "Make, model and license plate are required"),
    ({"year": "1800"}, "Year must be between 1900 and 2100"),
    ({"daily_rate": "-1"}, "Daily rate cannot be negative"),
    ({"fuel_type": "Diesel"}, "Fuel type must be Gas, Electric or Hybrid"),
    ({"category_id": "77"}, "Category not found"),
])
def test_create_validation(db, over, error):
    ok, msg, car = CarService.create_car(_form(**over))
    assert not ok
    assert msg == error
    assert car is None


def test_plate_must_be_unique(make_car):
    make_car(license_plate="WXY 1234")
    ok, msg, _ = CarService.create_car(_form())
    assert not ok
    assert "already registered" in msg


def test_update_keeps_unspecified_fields(make_car):
    car = make_car(color="Red")
    ok, msg, car = CarService.update_car(car.id, {"daily_rate": "95.5"})
    assert ok, msg
    assert car.daily_rate == 95.5
    assert car.color == "Red"
    assert car.updated_at is not None


def test_update_rejects_bad_data(make_car):
    car = make_car(daily_rate=80.0)
    ok, _, car = CarService.update_car(car.id, {"daily_rate": "-3"})
    assert not ok
    assert car.daily_rate == 80.0


def test_toggle_availability(make_car):
    car = make_car()
    ok, msg, car = CarService.toggle_availability(car.id)
    assert not car.is_available
    assert msg.endswith("has been made unavailable.")
    _, msg, car = CarService.toggle_availability(car.id)
    assert car.is_available
    assert msg.endswith("has been made available.")


def test_manage_cars_and_stats(make_car):
    make_car("Tesla", "Model Y", electric=True, license_plate="EV 1")
    make_car("Toyota", "Vios", is_available=False, state="Penang")
    assert [c.model for c in CarService.manage_cars(search="ev 1")] == ["Model Y"]
    assert [c.model for c in CarService.manage_cars(status="unavailable")] == ["Vios"]
    assert [c.model for c in CarService.manage_cars(state="penang")] == ["Vios"]
    assert CarService.fleet_stats() == {"total": 2, "available": 1, "unavailable": 1,
                                        "electric": 1, "gas": 1}


def test_attach_image_replaces_old_upload(app, make_car):
    car = make_car()
    first = FileStorage(stream=io.BytesIO(b"one"), filename="front.jpg")
    ok, _, car = CarService.attach_image(car.id, first)
    assert ok
    old_url = car.image_url
    assert old_url.startswith("/uploads/vehicles/vehicle_")

    car.image_url = old_url.replace(".jpg", "_old.jpg")
    path = UploadService.resolve_path(car.image_url)
    with open(path, "wb") as fh:
        fh.write(b"stale")
    second = FileStorage(stream=io.BytesIO(b"two"), filename="side.png")
    ok, _, car = CarService.attach_image(car.id, second)
    assert ok
    assert car.image_url.endswith(".png")
    assert UploadService.resolve_path(car.image_url)
    assert not os.path.exists(path)


def test_attach_image_rejects_bad_type(make_car):
    car = make_car()
    bad = FileStorage(stream=io.BytesIO(b"MZ"), filename="virus.exe")
    ok, msg, car = CarService.attach_image(car.id, bad)
    assert not ok
    assert msg.startswith("Invalid file type")
    assert car.image_url is None
