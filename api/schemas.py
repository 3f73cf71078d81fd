"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Optional

from domain.enums import RoomType, RoomStatus, PaymentType, PaymentMethod, Role


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str = Field(min_length=1, max_length=20)
    room_type: RoomType
    price: Decimal = Field(ge=0, decimal_places=2)


class UpdateRoomRequest(BaseModel):
    """Update room request DTO"""
    room_type: Optional[RoomType] = None
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)


class UpdateRoomStatusRequest(BaseModel):
    """Room status change DTO (housekeeping or admin override)"""
    status: RoomStatus


class AssignCleanerRequest(BaseModel):
    """Assign cleaner DTO; null clears the assignment"""
    cleaner_id: Optional[UUID] = None


class RoomResponse(BaseModel):
    """Room response DTO"""
    room_id: UUID
    number: str
    room_type: str
    price: Decimal
    status: str
    assigned_cleaner_id: Optional[UUID] = None
    created_at: datetime
    modified_at: datetime
    version: int


class AvailabilityResponse(BaseModel):
    """Single-room availability answer"""
    room_id: UUID
    check_in: date
    check_out: date
    available: bool


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class CreateBookingRequest(BaseModel):
    """Create booking request DTO"""
    room_id: UUID
    guest_name: str = Field(min_length=1, max_length=100)
    check_in: date
    check_out: date


class CheckInRequest(BaseModel):
    """Check-in request DTO; the payment is recorded with the check-in"""
    amount: Decimal = Field(gt=0, decimal_places=2)
    payment_type: PaymentType = PaymentType.DEPOSIT
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None
    early: bool = Field(default=False, description="Explicit early check-in before the check-in date")


class CheckOutRequest(BaseModel):
    """Check-out request DTO"""
    confirm_early: bool = False


class CancelBookingRequest(BaseModel):
    """Cancel booking request DTO"""
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    """Booking response DTO"""
    booking_id: UUID
    reference: str
    room_id: UUID
    guest_name: str
    check_in: date
    check_out: date
    nights: int
    price: Decimal
    status: str
    creation_source: str
    created_by: UUID
    cancellation_reason: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    modified_at: datetime
    version: int


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================

class CreatePaymentRequest(BaseModel):
    """Create payment request DTO; refunds carry a negative amount"""
    amount: Decimal = Field(decimal_places=2)
    payment_type: PaymentType
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = None


class UpdatePaymentRequest(BaseModel):
    """Update payment request DTO; omitted fields stay unchanged"""
    amount: Optional[Decimal] = Field(None, decimal_places=2)
    payment_type: Optional[PaymentType] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    """Payment response DTO"""
    payment_id: UUID
    booking_id: UUID
    amount: Decimal
    payment_type: str
    payment_method: str
    notes: Optional[str] = None
    created_by: UUID
    created_at: datetime
    updated_at: datetime


class PaymentSummaryResponse(BaseModel):
    """Payment summary response DTO"""
    booking_id: UUID
    total_price: Decimal
    total_paid: Decimal
    remaining_balance: Decimal
    payment_count: int


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str

class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None

class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    role: Role
    email: Optional[str] = None
    full_name: Optional[str] = None
    disabled: bool
