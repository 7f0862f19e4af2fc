from .user import User
from .car import Car, Category
from .booking import Appointment, Payment
from .offer import Promotion, Subscription
from .engagement import Review, Favorite, Notification

__all__ = [
    "User", "Car", "Category", "Appointment", "Payment",
    "Promotion", "Subscription", "Review", "Favorite", "Notification",
]
