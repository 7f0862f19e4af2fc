from ..extensions import db
from ..services.common import utcnow, fmt_dt
from ..utils.constants import Role


class User(db.Model):
    """
    Registered account. `role` decides what the account may do:
    Customers book cars, Staff run the back office, Managers also manage staff.
    """
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=False, default="")
    last_name = db.Column(db.String(100), nullable=False, default="")
    phone = db.Column(db.String(30))
    role = db.Column(db.String(20), nullable=False, default=Role.CUSTOMER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    date_of_birth = db.Column(db.Date)
    address = db.Column(db.String(255))
    city = db.Column(db.String(100))
    state = db.Column(db.String(100))
    zip_code = db.Column(db.String(20))
    license_number = db.Column(db.String(50))
    profile_picture_url = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    appointments = db.relationship("Appointment", backref="user", lazy="dynamic")
    reviews = db.relationship("Review", backref="user", lazy="dynamic", cascade="all, delete-orphan")
    favorites = db.relationship("Favorite", backref="user", lazy="dynamic", cascade="all, delete-orphan")
    notifications = db.relationship(
        "Notification", backref="user", lazy="dynamic", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_back_office(self) -> bool:
        return self.role in Role.BACK_OFFICE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "phone": self.phone,
            "role": self.role,
            "is_active": self.is_active,
            "city": self.city,
            "state": self.state,
            "license_number": self.license_number,
            "profile_picture_url": self.profile_picture_url,
            "created_at": fmt_dt(self.created_at),
        }
