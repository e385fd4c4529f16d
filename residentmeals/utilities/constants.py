from typing import Final

DAYS_OF_WEEK: Final[tuple[str, ...]] = (
    "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"
)
MEAL_TYPES: Final[tuple[str, ...]] = ("breakfast", "lunch", "dinner")

MIN_ITEMS_PER_MEAL: Final[int] = 1
MAX_ITEMS_PER_MEAL: Final[int] = 10
MAX_MEALS_PER_ORDER: Final[int] = len(DAYS_OF_WEEK) * len(MEAL_TYPES)

BAGEL_TYPES: Final[tuple[str, ...]] = (
    "Plain", "Sesame", "Everything", "Whole Wheat", "Poppy Seed", "Onion"
)

# Order status values
STATUS_DRAFT: Final[str] = "draft"
STATUS_SUBMITTED: Final[str] = "submitted"
STATUS_PAID: Final[str] = "paid"
STATUS_CANCELLED: Final[str] = "cancelled"

PAYMENT_PENDING: Final[str] = "pending"
PAYMENT_PAID: Final[str] = "paid"
PAYMENT_FAILED: Final[str] = "failed"
PAYMENT_REFUNDED: Final[str] = "refunded"

# Actor roles handed over by the authentication layer
ROLE_ADMIN: Final[str] = "admin"
ROLE_FACILITY_ADMIN: Final[str] = "nursing_home_admin"
ROLE_FACILITY_USER: Final[str] = "nursing_home_user"

ORDER_NUMBER_PREFIX: Final[str] = "NH-RES"
DEADLINE_MESSAGE: Final[str] = "Orders must be submitted by Sunday 12:00 PM"
