"""Domain Enums"""
from enum import Enum


class RoomType(str, Enum):
    SINGLE = "single"
    DOUBLE = "double"
    SUITE = "suite"


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    DIRTY = "dirty"
    CLEANING = "cleaning"


class BookingStatus(str, Enum):
    UPCOMING = "upcoming"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED)

    @property
    def is_active(self) -> bool:
        """Active bookings hold their date range on the room"""
        return self in (BookingStatus.UPCOMING, BookingStatus.CHECKED_IN)


class CreationSource(str, Enum):
    STAFF = "staff"
    GUEST = "guest"


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    PARTIAL = "partial"
    FULL = "full"
    REFUND = "refund"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"


class Role(str, Enum):
    ADMIN = "admin"
    RECEPTIONIST = "receptionist"
    CLEANER = "cleaner"
    GUEST = "guest"

    @property
    def is_staff(self) -> bool:
        return self in (Role.ADMIN, Role.RECEPTIONIST)
