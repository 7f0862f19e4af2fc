from __future__ import annotations

from ..extensions import db
from ..models import Car, Favorite
from .common import to_int_safe


class FavoriteService:
    """Per-user saved cars."""

    @staticmethod
    def list_for_user(user_id):
        return (Favorite.query.filter_by(user_id=user_id)
                .order_by(Favorite.created_at.desc(), Favorite.id.desc()).all())

    @staticmethod
    def add(user_id, car_id):
        cid = to_int_safe(car_id)
        if not cid or not db.session.get(Car, cid):
            return False, "Car not found"
        if FavoriteService.is_favorited(user_id, cid):
            return False, "Already in favorites"
        db.session.add(Favorite(user_id=user_id, car_id=cid))
        db.session.commit()
        return True, "Added to favorites"

    @staticmethod
    def remove(user_id, car_id):
        fav = Favorite.query.filter_by(user_id=user_id, car_id=to_int_safe(car_id)).first()
        if not fav:
            return False, "Favorite not found"
        db.session.delete(fav)
        db.session.commit()
        return True, "Removed from favorites"

    @staticmethod
    def is_favorited(user_id, car_id) -> bool:
        if not user_id:
            return False
        return Favorite.query.filter_by(user_id=user_id, car_id=to_int_safe(car_id)).first() is not None

    @staticmethod
    def favorited_ids(user_id, car_ids) -> set:
        ids = [i for i in (to_int_safe(c) for c in car_ids) if i]
        if not user_id or not ids:
            return set()
        rows = (db.session.query(Favorite.car_id)
                .filter(Favorite.user_id == user_id, Favorite.car_id.in_(ids)).all())
        return {r[0] for r in rows}
