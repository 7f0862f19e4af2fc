# car_rental/utils/constants.py

"""
Global constants for roles, statuses, and business rules.
These constants are imported by both models and services.
"""

# Date format accepted from forms/query strings
DATE_FMT = "%Y-%m-%d"
DATETIME_FMT = "%Y-%m-%dT%H:%M"


class Role:
    CUSTOMER = "Customer"
    STAFF = "Staff"
    MANAGER = "Manager"

    ALL = (CUSTOMER, STAFF, MANAGER)
    BACK_OFFICE = (STAFF, MANAGER)


class AppointmentStatus:
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    ALL = (PENDING, CONFIRMED, COMPLETED, CANCELLED)
    # statuses that count towards revenue
    REVENUE = (CONFIRMED, COMPLETED)


class PaymentStatus:
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "PartiallyRefunded"

    ALL = (PENDING, COMPLETED, FAILED, REFUNDED, PARTIALLY_REFUNDED)


class PaymentMethod:
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    PAYPAL = "PayPal"

    ALL = (CREDIT_CARD, DEBIT_CARD, PAYPAL)


class NotificationType:
    INFO = "Info"
    SUCCESS = "Success"
    WARNING = "Warning"
    DANGER = "Danger"


class FuelType:
    GAS = "Gas"
    ELECTRIC = "Electric"
    HYBRID = "Hybrid"

    ALL = (GAS, ELECTRIC, HYBRID)


class CustomerView:
    ACTIVE = "Active"
    HISTORY = "History"
    ALL = "All"


class SortOrder:
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    YEAR_DESC = "year_desc"
    RATING_DESC = "rating_desc"


# --- Booking rules ---
MIN_BOOKING_HOURS = 1
PAST_TOLERANCE_MINUTES = 5
FULL_REFUND_HOURS = 48
SLOT_WINDOW_DAYS = 30
MAX_EV_COMPARE = 3

# --- Catalog defaults ---
DEFAULT_STATE = "Kuala Lumpur"
DEFAULT_MIN_PRICE = 0.0
DEFAULT_MAX_PRICE = 1000.0
PLACEHOLDER = "/static/images/placeholder.png"

# --- Uploads ---
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
MAX_VEHICLE_IMAGE_BYTES = 10 * 1024 * 1024
MAX_PROFILE_IMAGE_BYTES = 5 * 1024 * 1024
