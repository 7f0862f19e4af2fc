from __future__ import annotations

import logging
from typing import Optional

from ..exceptions import PermissionDeniedError, ReviewNotFoundError
from ..extensions import db
from ..models import Appointment, Car, Review
from ..utils.constants import AppointmentStatus, NotificationType, Role
from .common import clean, to_int_safe, utcnow
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

MAX_COMMENT = 1000


def _validate(rating, comment):
    r = to_int_safe(rating)
    if r is None or not 1 <= r <= 5:
        return None, None, "Rating must be between 1 and 5"
    text = clean(comment) or None
    if text and len(text) > MAX_COMMENT:
        return None, None, "Comment cannot exceed 1000 characters"
    return r, text, None


class ReviewService:
    """Customer reviews with staff moderation. Only approved reviews are public."""

    @staticmethod
    def get(review_id) -> Review:
        rid = to_int_safe(review_id)
        review = db.session.get(Review, rid) if rid else None
        if not review:
            raise ReviewNotFoundError()
        return review

    @staticmethod
    def list_approved(car_id=None, limit: Optional[int] = None):
        q = Review.query.filter(Review.is_approved.is_(True))
        if car_id is not None:
            q = q.filter(Review.car_id == car_id)
        q = q.order_by(Review.created_at.desc(), Review.id.desc())
        if limit:
            q = q.limit(limit)
        return q.all()

    @staticmethod
    def rating_summary(car_id) -> dict:
        avg, cnt = (db.session.query(db.func.avg(Review.rating), db.func.count(Review.id))
                    .filter(Review.car_id == car_id, Review.is_approved.is_(True))
                    .one())
        return {"average": round(float(avg), 1) if avg is not None else 0.0, "count": int(cnt or 0)}

    @staticmethod
    def can_review(car_id, user_id) -> bool:
        """Only customers who completed a booking of this car may review it."""
        return Appointment.query.filter_by(car_id=car_id, user_id=user_id,
                                           status=AppointmentStatus.COMPLETED).first() is not None

    @staticmethod
    def existing_review(car_id, user_id) -> Optional[Review]:
        return Review.query.filter_by(car_id=car_id, user_id=user_id).first()

    @staticmethod
    def create(car_id, user_id, rating, comment=None):
        """
        Returns (ok, message, review). When the user already reviewed this car the
        existing review is returned with ok=False so the caller can switch to editing.
        """
        car = db.session.get(Car, to_int_safe(car_id)) if to_int_safe(car_id) else None
        if not car:
            return False, "Car not found", None
        if not ReviewService.can_review(car.id, user_id):
            return False, "You can only review cars you have completed bookings for.", None
        existing = ReviewService.existing_review(car.id, user_id)
        if existing:
            return False, "You have already reviewed this car. You can edit your review instead.", existing

        r, text, err = _validate(rating, comment)
        if err:
            return False, err, None

        review = Review(car_id=car.id, user_id=user_id, rating=r, comment=text, is_approved=False)
        db.session.add(review)
        NotificationService.notify_roles(
            Role.BACK_OFFICE,
            "New Review Pending Approval",
            f"A new review for {car.display_name} is waiting for approval.",
            NotificationType.INFO,
            commit=False,
        )
        db.session.commit()
        logger.info("review %s submitted for car %s", review.id, car.id)
        return True, "Review submitted successfully! It will be reviewed before publication.", review

    @staticmethod
    def edit(review_id, user_id, rating, comment=None):
        """Owner edit; the review goes back into the moderation queue."""
        review = ReviewService.get(review_id)
        if review.user_id != user_id:
            raise PermissionDeniedError("You can only edit your own reviews.")
        r, text, err = _validate(rating, comment)
        if err:
            return False, err, review
        review.rating = r
        review.comment = text
        review.is_approved = False
        review.updated_at = utcnow()
        db.session.commit()
        return True, "Review updated successfully!", review

    @staticmethod
    def approve(review_id):
        review = ReviewService.get(review_id)
        review.is_approved = True
        review.updated_at = utcnow()
        db.session.commit()
        return True, "Review approved successfully!"

    @staticmethod
    def reject(review_id):
        review = ReviewService.get(review_id)
        db.session.delete(review)
        db.session.commit()
        return True, "Review rejected and removed."

    @staticmethod
    def delete(review_id, user_id, role: Optional[str] = None):
        review = ReviewService.get(review_id)
        if review.user_id != user_id and role not in Role.BACK_OFFICE:
            raise PermissionDeniedError("You can only delete your own reviews.")
        db.session.delete(review)
        db.session.commit()
        return True, "Review deleted successfully!"

    @staticmethod
    def manage(status: Optional[str] = None):
        """Moderation list (newest first) filtered by Pending / Approved, plus queue stats."""
        q = Review.query
        st = clean(status).lower()
        if st == "pending":
            q = q.filter(Review.is_approved.is_(False))
        elif st == "approved":
            q = q.filter(Review.is_approved.is_(True))
        reviews = q.order_by(Review.created_at.desc(), Review.id.desc()).all()

        avg = (db.session.query(db.func.avg(Review.rating))
               .filter(Review.is_approved.is_(True)).scalar())
        stats = {
            "total": Review.query.count(),
            "pending": Review.query.filter(Review.is_approved.is_(False)).count(),
            "approved": Review.query.filter(Review.is_approved.is_(True)).count(),
            "average_rating": round(float(avg), 1) if avg is not None else 0.0,
        }
        return reviews, stats
