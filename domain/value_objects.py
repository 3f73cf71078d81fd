"""Domain Value Objects"""
from pydantic import BaseModel, validator
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from domain.enums import Role
from domain.errors import RangeInvalid

CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Normalize a monetary value to an exact two-place Decimal"""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


class DateRange(BaseModel):
    """Value Object for a half-open stay [check_in, check_out)"""
    check_in: date
    check_out: date

    @validator('check_out')
    def check_out_after_check_in(cls, v, values):
        if 'check_in' in values and v <= values['check_in']:
            raise ValueError('Check-out must be after check-in')
        return v

    @classmethod
    def between(cls, check_in: date, check_out: date) -> "DateRange":
        """Build a range, failing with RangeInvalid instead of a pydantic error"""
        if check_out <= check_in:
            raise RangeInvalid(
                f"Check-out date {check_out} must be after check-in date {check_in}"
            )
        return cls(check_in=check_in, check_out=check_out)

    def nights(self) -> int:
        """Calculate number of nights"""
        return (self.check_out - self.check_in).days

    def overlaps(self, other: "DateRange") -> bool:
        # Back-to-back stays share a boundary day but do not overlap.
        return self.check_in < other.check_out and self.check_out > other.check_in

    class Config:
        frozen = True


class Actor(BaseModel):
    """Identity supplied by the caller for every request"""
    user_id: UUID
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role.is_staff

    class Config:
        frozen = True


class PaymentSummary(BaseModel):
    """Derived view of a booking's ledger. Never stored."""
    booking_id: UUID
    total_price: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    payment_count: int

    class Config:
        frozen = True
