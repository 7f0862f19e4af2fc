from __future__ import annotations

from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Optional

from ..models import Appointment, Car, Promotion, Review, Subscription, User
from ..utils.constants import AppointmentStatus, Role
from .common import previous_month, round2, start_of_day, start_of_month, utcnow


def _is_revenue(a: Appointment) -> bool:
    return a.status in AppointmentStatus.REVENUE


def _revenue(appts) -> float:
    return round2(sum((a.total_price or 0) for a in appts if _is_revenue(a)))


def _created_between(start: datetime, end: datetime):
    return (Appointment.query
            .filter(Appointment.created_at >= start, Appointment.created_at <= end)
            .all())


def _car_label(a: Appointment) -> str:
    if a.car is None:
        return "Unknown"
    return f"{a.car.make} {a.car.model}"


class AnalyticsService:
    """Aggregations for dashboards and staff reports. Revenue only counts Confirmed/Completed."""

    @staticmethod
    def dashboard(now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        today = start_of_day(now)
        this_month = start_of_month(now)
        last_month = previous_month(now)

        everything = Appointment.query.all()
        month_appts = [a for a in everything if a.created_at >= this_month]
        last_month_appts = [a for a in everything if last_month <= a.created_at < this_month]

        # Top cars this month
        counts = Counter()
        car_revenue = defaultdict(float)
        for a in month_appts:
            counts[a.car_id] += 1
            if _is_revenue(a):
                car_revenue[a.car_id] += float(a.total_price or 0)
        labels = {a.car_id: _car_label(a) for a in month_appts}
        top_cars = [{"car_id": cid, "car": labels[cid], "bookings": n, "revenue": round2(car_revenue[cid])}
                    for cid, n in counts.most_common(5)]

        # Revenue by day this month
        by_day = defaultdict(float)
        for a in month_appts:
            if _is_revenue(a):
                by_day[a.created_at.date().isoformat()] += float(a.total_price or 0)
        revenue_by_day = [{"date": k, "revenue": round2(v)} for k, v in sorted(by_day.items())]

        return {
            "revenue": {
                # today's revenue follows the pickup date, the monthly figures the booking date
                "today": _revenue(a for a in everything if start_of_day(a.start_date) == today),
                "this_month": _revenue(month_appts),
                "last_month": _revenue(last_month_appts),
            },
            "bookings": {
                "today": sum(1 for a in everything if start_of_day(a.created_at) == today),
                "this_month": len(month_appts),
                "last_month": len(last_month_appts),
            },
            "top_cars": top_cars,
            "revenue_by_day": revenue_by_day,
        }

    @staticmethod
    def revenue_series(start: Optional[datetime] = None, end: Optional[datetime] = None) -> list:
        """Daily revenue and booking counts for bookings created in [start, end]."""
        end = end or utcnow()
        start = start or end - timedelta(days=30)
        rev = defaultdict(float)
        cnt = Counter()
        for a in _created_between(start, end):
            if not _is_revenue(a):
                continue
            day = a.created_at.date().isoformat()
            rev[day] += float(a.total_price or 0)
            cnt[day] += 1
        return [{"date": d, "revenue": round2(rev[d]), "bookings": cnt[d]} for d in sorted(rev)]

    @staticmethod
    def report(start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        """Staff report over bookings created in [start, end]; defaults to the last 30 days."""
        end = end or utcnow()
        start = start or end - timedelta(days=30)
        if start > end:
            start, end = end, start
        appts = _created_between(start, end)

        by_status = defaultdict(float)
        for a in appts:
            by_status[a.status] += float(a.total_price or 0)

        cars = Counter(_car_label(a) for a in appts)
        days = Counter(a.created_at.date().isoformat() for a in appts)

        return {
            "start": start.isoformat(timespec="minutes"),
            "end": end.isoformat(timespec="minutes"),
            "total_bookings": len(appts),
            "total_revenue": _revenue(appts),
            "revenue_by_status": [{"status": k, "revenue": round2(v)} for k, v in sorted(by_status.items())],
            "top_cars": [{"car": k, "count": v} for k, v in cars.most_common(5)],
            "bookings_by_day": [{"date": k, "count": v} for k, v in sorted(days.items())],
        }

    @staticmethod
    def manager_overview() -> dict:
        role_cnt = Counter(u.role for u in User.query.all())
        appts = Appointment.query.all()
        return {
            "total_users": sum(role_cnt.values()),
            "total_staff": role_cnt.get(Role.STAFF, 0),
            "total_customers": role_cnt.get(Role.CUSTOMER, 0),
            "total_appointments": len(appts),
            "total_revenue": _revenue(appts),
            "total_cars": Car.query.count(),
        }

    @staticmethod
    def system_statistics(now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        role_cnt = Counter(u.role for u in User.query.all())
        appts = Appointment.query.all()
        this_month = start_of_month(now)
        return {
            "users": {
                "total": sum(role_cnt.values()),
                "customers": role_cnt.get(Role.CUSTOMER, 0),
                "staff": role_cnt.get(Role.STAFF, 0),
                "managers": role_cnt.get(Role.MANAGER, 0),
            },
            "cars": {
                "total": Car.query.count(),
                "available": Car.query.filter_by(is_available=True).count(),
            },
            "bookings": {
                "total": len(appts),
                "by_status": dict(Counter(a.status for a in appts)),
            },
            "revenue": {
                "total": _revenue(appts),
                "this_month": _revenue(a for a in appts if a.created_at >= this_month),
            },
            "reviews": {
                "total": Review.query.count(),
                "approved": Review.query.filter_by(is_approved=True).count(),
            },
            "promotions": {
                "total": Promotion.query.count(),
                "active": Promotion.query.filter_by(is_active=True).count(),
            },
            "subscriptions": {
                "total": Subscription.query.count(),
                "active": Subscription.query.filter_by(is_active=True).count(),
            },
        }
