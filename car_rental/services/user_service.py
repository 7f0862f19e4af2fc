from __future__ import annotations

import logging
import re
from typing import Optional

from ..exceptions import PermissionDeniedError, UserNotFoundError
from ..extensions import db
from ..models import Appointment, User
from ..utils.constants import AppointmentStatus, Role
from ..utils.security import check_hash, generate_hash
from .common import _lc, clean, round2, to_int_safe, fmt_dt
from .upload_service import UploadService

logger = logging.getLogger(__name__)

# Compile once at module import
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{6,}$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PROFILE_FIELDS = ("first_name", "last_name", "phone", "address", "city", "state",
                  "zip_code", "license_number")


def _check_credentials(email: str, password: str) -> Optional[str]:
    if not email or not password:
        return "Email and password are required."
    if not EMAIL_PATTERN.match(email):
        return "Please enter a valid email address."
    if not PASSWORD_PATTERN.match(password):
        return "Password must have at least 6 characters, including A-Z, a-z, and 0-9."
    if User.query.filter(db.func.lower(User.email) == email).first():
        return "An account with this email already exists."
    return None


class UserService:
    """Accounts: registration, login, profile, and back-office administration."""

    @staticmethod
    def get(user_id) -> User:
        uid = to_int_safe(user_id)
        user = db.session.get(User, uid) if uid else None
        if not user:
            raise UserNotFoundError()
        return user

    @staticmethod
    def _create(email, password, role, **profile):
        email = _lc(clean(email))
        err = _check_credentials(email, password or "")
        if err:
            return False, err, None
        user = User(email=email, password_hash=generate_hash(password), role=role, is_active=True)
        for field in PROFILE_FIELDS:
            if field in profile:
                setattr(user, field, clean(profile[field]) or ("" if field.endswith("_name") else None))
        db.session.add(user)
        db.session.commit()
        logger.info("%s account %s created", role, user.id)
        return True, "Account created", user

    @staticmethod
    def register_customer(email, password, **profile):
        return UserService._create(email, password, Role.CUSTOMER, **profile)

    @staticmethod
    def authenticate(email, password) -> Optional[User]:
        user = User.query.filter(db.func.lower(User.email) == _lc(clean(email))).first()
        if not user or not user.is_active:
            return None
        if not check_hash(password or "", user.password_hash):
            return None
        return user

    @staticmethod
    def update_profile(user_id, data: dict, picture=None):
        user = UserService.get(user_id)
        for field in PROFILE_FIELDS:
            if field in data:
                value = clean(data[field])
                setattr(user, field, value if value or field.endswith("_name") else None)
        if picture is not None and getattr(picture, "filename", ""):
            ok, msg, url = UploadService.save_profile_picture(picture, user.id)
            if not ok:
                db.session.rollback()
                return False, msg, user
            old = user.profile_picture_url
            user.profile_picture_url = url
            if old and old != url:
                UploadService.delete_file(old)
        db.session.commit()
        return True, "Profile updated successfully.", user

    # -------- manager --------
    @staticmethod
    def create_staff(email, password, **profile):
        return UserService._create(email, password, Role.STAFF, **profile)

    @staticmethod
    def list_staff():
        return User.query.filter_by(role=Role.STAFF).order_by(User.created_at.desc()).all()

    @staticmethod
    def delete_user(user_id, actor_id):
        user = UserService.get(user_id)
        if user.id == actor_id:
            return False, "You cannot delete your own account!"
        # bookings stay for reporting; they keep the copied customer details
        for appt in user.appointments:
            appt.user_id = None
        db.session.delete(user)
        db.session.commit()
        logger.info("user %s deleted by %s", user_id, actor_id)
        return True, "User deleted successfully."

    @staticmethod
    def delete_all_customers():
        customers = User.query.filter_by(role=Role.CUSTOMER).all()
        for user in customers:
            for appt in user.appointments:
                appt.user_id = None
            db.session.delete(user)
        db.session.commit()
        return True, (f"Successfully deleted {len(customers)} customer account(s). "
                      f"Staff and Manager accounts were preserved.")

    # -------- staff & manager --------
    @staticmethod
    def toggle_status(user_id, actor: User):
        user = UserService.get(user_id)
        if user.id == actor.id:
            raise PermissionDeniedError("You cannot modify your own account status.")
        if user.role == Role.MANAGER and actor.role != Role.MANAGER:
            raise PermissionDeniedError("You don't have permission to modify Manager account status.")
        user.is_active = not user.is_active
        db.session.commit()
        state = "activated" if user.is_active else "deactivated"
        return True, f"{user.role} account {state} successfully.", user

    @staticmethod
    def booking_stats(user_id) -> dict:
        """Booking count, money spent on confirmed/completed bookings, last booking time."""
        appts = Appointment.query.filter_by(user_id=user_id).all()
        spent = sum(a.total_price or 0 for a in appts if a.status in AppointmentStatus.REVENUE)
        last = max((a.created_at for a in appts), default=None)
        return {"booking_count": len(appts), "total_spent": round2(spent), "last_booking": fmt_dt(last)}

    @staticmethod
    def search_users(search: Optional[str] = None, status: Optional[str] = None,
                     role: Optional[str] = None):
        """Users newest first, each with booking stats attached."""
        res = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
        kw = _lc(clean(search))
        if kw:
            res = [u for u in res
                   if kw in _lc(u.email) or kw in _lc(u.full_name) or kw in _lc(u.phone)]
        st = _lc(clean(status))
        if st == "active":
            res = [u for u in res if u.is_active]
        elif st == "inactive":
            res = [u for u in res if not u.is_active]
        if clean(role) and _lc(clean(role)) != "all":
            res = [u for u in res if _lc(u.role) == _lc(clean(role))]

        out = []
        for u in res:
            row = u.to_dict()
            row.update(UserService.booking_stats(u.id))
            out.append(row)
        return out

    @staticmethod
    def user_details(user_id) -> dict:
        user = UserService.get(user_id)
        recent = user.appointments.order_by(Appointment.created_at.desc()).limit(10).all()
        return {
            "user": user.to_dict(),
            "stats": UserService.booking_stats(user.id),
            "recent_bookings": [a.to_dict() for a in recent],
        }
