from datetime import timedelta

from car_rental.utils.constants import DATETIME_FMT, Role


def _fmt(dt):
    return dt.strftime(DATETIME_FMT)


def test_book_pay_complete_review(client, make_user, make_car, make_promotion, login, day0):
    car = make_car("Tesla", "Model 3", 200.0, electric=True)
    make_promotion(code="EVWEEKEND", pct=10, ev_only=True)
    customer = make_user()
    staff = make_user(role=Role.STAFF)

    # quote, then book
    login(customer)
    window = {"car_id": car.id, "start_date": _fmt(day0), "end_date": _fmt(day0 + timedelta(days=2)),
              "promotion_code": "evweekend"}
    q = client.post("/appointments/quote", json=window).get_json()
    assert q["quote"]["total_price"] == 360.0
    assert q["available"] is True

    r = client.post("/appointments", json=window)
    assert r.status_code == 201, r.get_json()
    appt = r.get_json()["appointment"]
    assert appt["status"] == "Pending"
    assert appt["total_price"] == 360.0

    # the same slot is gone for everyone else
    r = client.post("/appointments", json=window)
    assert r.status_code == 400

    # pay by card
    r = client.post("/payments", json={"appointment_id": appt["id"], "payment_method": "Credit Card"})
    assert r.status_code == 201
    payment = r.get_json()["payment"]
    assert payment["status"] == "Completed"
    detail = client.get(f"/appointments/{appt['id']}").get_json()
    assert detail["status"] == "Confirmed"

    # cannot review before completion
    r = client.post("/reviews", json={"car_id": car.id, "rating": 5})
    assert r.status_code == 400

    # staff closes the rental
    client.post("/logout")
    login(staff)
    r = client.post(f"/staff/orders/{appt['id']}/status", json={"status": "Completed"})
    assert r.status_code == 200
    assert r.get_json()["appointment"]["status"] == "Completed"

    # customer reviews; staff approves; it becomes public
    client.post("/logout")
    login(customer)
    r = client.post("/reviews", json={"car_id": car.id, "rating": 4, "comment": "Quiet and quick"})
    assert r.status_code == 201
    review_id = r.get_json()["review"]["id"]
    r = client.post("/reviews", json={"car_id": car.id, "rating": 1})
    assert r.status_code == 409
    assert r.get_json()["existing_review_id"] == review_id

    notes = client.get("/notifications").get_json()
    titles = {n["title"] for n in notes["notifications"]}
    assert {"Booking Created", "Payment Received", "Booking Completed"} <= titles

    client.post("/logout")
    login(staff)
    assert client.post(f"/staff/reviews/{review_id}/approve").status_code == 200

    client.post("/logout")
    public = client.get(f"/cars/{car.id}/reviews").get_json()
    assert public["count"] == 1
    assert public["average"] == 4.0


def test_customer_cancels_paid_booking(client, make_user, make_car, login, day0):
    car = make_car()
    login(make_user())
    r = client.post("/appointments", data={"car_id": str(car.id), "start_date": _fmt(day0),
                                           "end_date": _fmt(day0 + timedelta(days=1))})
    appt_id = r.get_json()["appointment"]["id"]
    client.post("/payments", json={"appointment_id": appt_id, "payment_method": "Credit Card"})

    r = client.post(f"/appointments/{appt_id}/cancel")
    assert r.status_code == 200
    body = r.get_json()
    assert body["appointment"]["status"] == "Cancelled"
    assert body["appointment"]["payment"]["status"] == "Refunded"

    history = client.get("/appointments?view=History").get_json()["appointments"]
    assert [a["id"] for a in history] == [appt_id]
    assert client.get("/appointments").get_json()["appointments"] == []


def test_foreign_booking_is_404(client, make_user, make_car, make_booking, login, day0):
    other = make_user()
    appt = make_booking(make_car(), other, day0, day0 + timedelta(days=1))
    login(make_user())
    r = client.get(f"/appointments/{appt.id}")
    assert r.status_code == 404
    assert r.get_json()["message"] == "Booking not found."


def test_staff_fleet_management(client, make_user, login):
    login(make_user(role=Role.STAFF))
    r = client.post("/staff/vehicles", data={"make": "Proton", "model": "Saga", "year": "2023",
                                             "license_plate": "pkr 9", "daily_rate": "75"})
    assert r.status_code == 201
    car_id = r.get_json()["vehicle"]["id"]

    r = client.post(f"/staff/vehicles/{car_id}/toggle")
    assert r.get_json()["vehicle"]["is_available"] is False
    assert client.get("/cars").get_json()["cars"] == []

    assert client.delete(f"/staff/vehicles/{car_id}").status_code == 200
    assert client.get(f"/cars/{car_id}").status_code == 404
