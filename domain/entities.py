"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, date
from typing import Optional, Iterable
from decimal import Decimal

from domain.enums import (
    RoomType, RoomStatus, BookingStatus, CreationSource, PaymentType, PaymentMethod
)
from domain.errors import ValidationError, InvalidTransition, GuardViolation
from domain.value_objects import DateRange, PaymentSummary, to_money

# Sentinel for "field not supplied" in partial corrections (None is a valid notes value).
UNSET = object()


class Room(BaseModel):
    """Room Aggregate Root Entity"""

    # Identity
    room_id: UUID = Field(default_factory=uuid4)
    number: str

    # Attributes
    room_type: RoomType
    price: Decimal

    # Status
    status: RoomStatus = RoomStatus.AVAILABLE
    assigned_cleaner_id: Optional[UUID] = None
    current_booking_id: Optional[UUID] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(number: str, room_type: RoomType, price: Decimal) -> "Room":
        """Create new room with validation"""
        number = (number or "").strip()
        if not number:
            raise ValidationError("Room number is required")
        Room._validate_price(price)
        return Room(number=number, room_type=room_type, price=to_money(price))

    # ==================== MODIFICATION METHODS ====================
    def update_details(
        self,
        room_type: Optional[RoomType] = None,
        price: Optional[Decimal] = None
    ) -> None:
        """Change type or price. Existing bookings keep their price snapshot."""
        if room_type is not None:
            self.room_type = room_type
        if price is not None:
            Room._validate_price(price)
            self.price = to_money(price)
        self._touch()

    def occupy(self, booking_id: UUID) -> None:
        """Mark the room occupied by a checked-in booking"""
        if self.status == RoomStatus.OCCUPIED and self.current_booking_id != booking_id:
            raise GuardViolation(
                f"Room {self.number} is already occupied by another booking",
                code="ROOM_OCCUPIED"
            )
        if self.status == RoomStatus.MAINTENANCE:
            raise GuardViolation(
                f"Room {self.number} is under maintenance",
                code="ROOM_UNAVAILABLE"
            )
        if self.status in (RoomStatus.DIRTY, RoomStatus.CLEANING):
            raise GuardViolation(
                f"Room {self.number} is {self.status.value} and must be cleaned before check-in",
                code="ROOM_NOT_READY"
            )
        self.status = RoomStatus.OCCUPIED
        self.current_booking_id = booking_id
        self._touch()

    def vacate(self) -> None:
        """Guest left; the room must be cleaned before it is available again"""
        self.status = RoomStatus.DIRTY
        self.current_booking_id = None
        self._touch()

    def release(self, booking_id: UUID) -> bool:
        """Undo an occupation caused by ``booking_id``. Returns whether anything changed."""
        if self.status != RoomStatus.OCCUPIED or self.current_booking_id != booking_id:
            return False
        self.status = RoomStatus.AVAILABLE
        self.current_booking_id = None
        self._touch()
        return True

    def change_status(self, status: RoomStatus) -> None:
        self.status = status
        self._touch()

    def assign_cleaner(self, cleaner_id: Optional[UUID]) -> None:
        if self.status not in (RoomStatus.DIRTY, RoomStatus.CLEANING):
            raise GuardViolation(
                f"Cleaners can only be assigned to dirty or cleaning rooms "
                f"(room {self.number} is {self.status.value})"
            )
        self.assigned_cleaner_id = cleaner_id
        self._touch()

    # ==================== QUERY METHODS ====================
    def is_assigned_to(self, cleaner_id: UUID) -> bool:
        return self.assigned_cleaner_id is not None and self.assigned_cleaner_id == cleaner_id

    def is_bookable(self) -> bool:
        return self.status != RoomStatus.MAINTENANCE

    # ==================== PRIVATE METHODS ====================
    @staticmethod
    def _validate_price(price: Decimal) -> None:
        if price is None or Decimal(str(price)) < 0:
            raise ValidationError("Room price must be zero or greater")

    def _touch(self) -> None:
        self.modified_at = datetime.utcnow()
        self.version += 1


class Booking(BaseModel):
    """Booking Aggregate Root Entity"""

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)
    reference: str

    # References to other contexts
    room_id: UUID
    guest_name: str
    created_by: UUID
    creation_source: CreationSource = CreationSource.STAFF

    # Value Objects
    date_range: DateRange
    price: Decimal = Field(frozen=True)

    # Status
    status: BookingStatus = BookingStatus.UPCOMING
    cancellation_reason: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    modified_at: datetime = Field(default_factory=datetime.utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        room: Room,
        guest_name: str,
        date_range: DateRange,
        created_by: UUID,
        creation_source: CreationSource,
        today: date
    ) -> "Booking":
        """Create new upcoming booking with the room's current price as snapshot"""
        guest_name = (guest_name or "").strip()
        if not guest_name:
            raise ValidationError("Guest name is required")
        if date_range.check_in < today:
            raise ValidationError("Check-in date cannot be in the past")

        return Booking(
            reference=Booking.generate_reference(today),
            room_id=room.room_id,
            guest_name=guest_name,
            created_by=created_by,
            creation_source=creation_source,
            date_range=date_range,
            price=room.price,
            status=BookingStatus.UPCOMING
        )

    # ==================== STATE TRANSITION METHODS ====================
    def mark_checked_in(self) -> None:
        self._move(BookingStatus.UPCOMING, BookingStatus.CHECKED_IN)
        self.checked_in_at = self.modified_at

    def mark_checked_out(self) -> None:
        self._move(BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT)
        self.checked_out_at = self.modified_at

    def mark_cancelled(self, reason: Optional[str] = None) -> None:
        self._move(BookingStatus.UPCOMING, BookingStatus.CANCELLED)
        self.cancellation_reason = reason
        self.cancelled_at = self.modified_at

    # ==================== QUERY METHODS ====================
    @property
    def check_in(self) -> date:
        return self.date_range.check_in

    @property
    def check_out(self) -> date:
        return self.date_range.check_out

    def blocks(self, date_range: DateRange) -> bool:
        """Whether this booking holds any night of ``date_range``"""
        return self.status.is_active and self.date_range.overlaps(date_range)

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.created_by == user_id

    # ==================== PRIVATE METHODS ====================
    @staticmethod
    def generate_reference(today: date) -> str:
        """Reference in the form BK-YYYYMMDD-XXXX"""
        import random
        import string
        suffix = ''.join(random.choices(string.ascii_uppercase + string.digits, k=4))
        return f"BK-{today.strftime('%Y%m%d')}-{suffix}"

    def _move(self, expected: BookingStatus, target: BookingStatus) -> None:
        if self.status != expected:
            raise InvalidTransition(
                f"Cannot move booking {self.reference} from {self.status.value} to {target.value}"
            )
        self.status = target
        self.modified_at = datetime.utcnow()
        self.version += 1


class Payment(BaseModel):
    """Payment Entity - one signed entry in a booking's ledger"""

    # Identity
    payment_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID

    # Entry
    amount: Decimal
    payment_type: PaymentType
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None

    # Metadata
    created_by: UUID
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        booking_id: UUID,
        amount: Decimal,
        payment_type: PaymentType,
        payment_method: PaymentMethod,
        created_by: UUID,
        notes: Optional[str] = None
    ) -> "Payment":
        amount = Payment.validate_amount(amount, payment_type)
        return Payment(
            booking_id=booking_id,
            amount=amount,
            payment_type=payment_type,
            payment_method=payment_method,
            notes=notes,
            created_by=created_by
        )

    # ==================== MODIFICATION METHODS ====================
    def correct(
        self,
        amount: Optional[Decimal] = None,
        payment_type: Optional[PaymentType] = None,
        payment_method: Optional[PaymentMethod] = None,
        notes=UNSET
    ) -> None:
        """Apply a correction; the merged entry must still be valid"""
        new_type = payment_type if payment_type is not None else self.payment_type
        new_amount = amount if amount is not None else self.amount
        self.amount = Payment.validate_amount(new_amount, new_type)
        self.payment_type = new_type
        if payment_method is not None:
            self.payment_method = payment_method
        if notes is not UNSET:
            self.notes = notes
        self.updated_at = datetime.utcnow()

    # ==================== VALIDATION ====================
    @staticmethod
    def validate_amount(amount: Decimal, payment_type: PaymentType) -> Decimal:
        """Enforce sign rules and return the normalized amount"""
        if amount is None:
            raise ValidationError("Payment amount is required")
        amount = to_money(amount)
        if amount == 0:
            raise ValidationError("Payment amount cannot be zero")
        if payment_type == PaymentType.REFUND and amount > 0:
            raise ValidationError("Refund amount must be negative")
        if payment_type != PaymentType.REFUND and amount < 0:
            raise ValidationError(
                "Payment amount must be positive (use refund type for negative amounts)"
            )
        return amount


def summarize_payments(booking: Booking, payments: Iterable[Payment]) -> PaymentSummary:
    """Recompute the ledger summary from the full payment history"""
    payments = [p for p in payments if p.booking_id == booking.booking_id]
    total_paid = sum((p.amount for p in payments), Decimal("0.00"))
    total_price = to_money(booking.price)
    return PaymentSummary(
        booking_id=booking.booking_id,
        total_price=total_price,
        total_paid=to_money(total_paid),
        remaining_balance=to_money(total_price - total_paid),
        payment_count=len(payments)
    )
