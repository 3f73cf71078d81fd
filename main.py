from fastapi import FastAPI, HTTPException, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from uuid import UUID
from datetime import date, timedelta
from typing import Callable, List, Optional
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRequest, UpdateRoomStatusRequest, AssignCleanerRequest,
    RoomResponse, AvailabilityResponse,
    # Bookings
    CreateBookingRequest, CheckInRequest, CheckOutRequest, CancelBookingRequest, BookingResponse,
    # Payments
    CreatePaymentRequest, UpdatePaymentRequest, PaymentResponse, PaymentSummaryResponse,
    # Auth
    Token, UserResponse
)

from api.dependencies import (
    get_current_active_user, get_current_actor, fake_users_db, get_user, to_http_exception,
    request_validation_response
)
from infrastructure.config import get_settings
from infrastructure.logging_config import configure_logging
from infrastructure.security import verify_password, create_access_token, ACCESS_TOKEN_EXPIRE_MINUTES
from domain.auth import User
from domain.entities import UNSET
from domain.errors import DomainError
from domain.repositories import UnitOfWork
from domain.value_objects import Actor

from application.services import (
    RoomService, AvailabilityService, BookingService, PaymentService, HousekeepingService
)
from infrastructure.repositories.in_memory_repositories import (
    InMemoryRoomRepository, InMemoryBookingRepository, InMemoryPaymentRepository
)
from infrastructure.unit_of_work import InMemoryUnitOfWork
from domain.enums import RoomType, RoomStatus, BookingStatus, PaymentType, PaymentMethod

configure_logging()
settings = get_settings()

app = FastAPI(
    title="Hotel Room Allocation API",
    description="Room allocation, stay lifecycle, payment ledger and housekeeping",
    version="1.0.0"
)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return request_validation_response(exc)

# Initialize storage
unit_of_work = InMemoryUnitOfWork(
    InMemoryRoomRepository(),
    InMemoryBookingRepository(),
    InMemoryPaymentRepository(),
    lock_timeout=settings.lock_timeout_seconds
)

# Dependency injection
def get_unit_of_work() -> UnitOfWork:
    return unit_of_work

def get_clock() -> Callable[[], date]:
    return date.today

def get_room_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> RoomService:
    return RoomService(uow)

def get_availability_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> AvailabilityService:
    return AvailabilityService(uow)

def get_payment_service(uow: UnitOfWork = Depends(get_unit_of_work)) -> PaymentService:
    return PaymentService(uow)

def get_booking_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
    clock: Callable[[], date] = Depends(get_clock)
) -> BookingService:
    return BookingService(
        uow,
        availability=AvailabilityService(uow),
        payments=PaymentService(uow),
        clock=clock,
        create_retries=settings.booking_create_retries
    )

def get_housekeeping_service(
    uow: UnitOfWork = Depends(get_unit_of_work),
    clock: Callable[[], date] = Depends(get_clock)
) -> HousekeepingService:
    return HousekeepingService(uow, clock=clock)

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "message": "API is running"}

@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    """Get all RoomStatus enum values"""
    return {"values": [item.value for item in RoomStatus]}

@app.get("/api/enums/room-type", tags=["Enum Reference"])
async def get_room_types():
    """Get all RoomType enum values"""
    return {"values": [item.value for item in RoomType]}

@app.get("/api/enums/booking-status", tags=["Enum Reference"])
async def get_booking_statuses():
    """Get all BookingStatus enum values"""
    return {"values": [item.value for item in BookingStatus]}

@app.get("/api/enums/payment-type", tags=["Enum Reference"])
async def get_payment_types():
    """Get all PaymentType enum values"""
    return {"values": [item.value for item in PaymentType]}

@app.get("/api/enums/payment-method", tags=["Enum Reference"])
async def get_payment_methods():
    """Get all PaymentMethod enum values"""
    return {"values": [item.value for item in PaymentMethod]}

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value}, expires_delta=access_token_expires
    )
    return {"access_token": access_token, "token_type": "bearer"}

@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Register a room (admin)"""
    try:
        room = await service.create_room(
            actor=actor,
            number=request.number,
            room_type=request.room_type,
            price=request.price
        )
        return _room_to_response(room)
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def list_rooms(
    status: Optional[RoomStatus] = None,
    room_type: Optional[RoomType] = None,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """List rooms, optionally filtered by status or type"""
    rooms = await service.list_rooms(status=status, room_type=room_type)
    return [_room_to_response(r) for r in rooms]

@app.get("/api/rooms/available", response_model=List[RoomResponse], tags=["Rooms"])
async def list_available_rooms(
    check_in: date,
    check_out: date,
    room_type: Optional[RoomType] = None,
    service: AvailabilityService = Depends(get_availability_service)
):
    """Search rooms free for the whole stay (public, advisory)"""
    try:
        rooms = await service.find_available_rooms(check_in, check_out, room_type)
        return [_room_to_response(r) for r in rooms]
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/rooms/assigned", response_model=List[RoomResponse], tags=["Housekeeping"])
async def list_assigned_rooms(
    cleaner_id: Optional[UUID] = None,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Rooms assigned to a cleaner (the caller, for cleaners)"""
    try:
        rooms = await service.list_assigned_rooms(actor, cleaner_id)
        return [_room_to_response(r) for r in rooms]
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def get_room(
    room_id: UUID,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get room by ID"""
    try:
        return _room_to_response(await service.get_room(room_id))
    except DomainError as e:
        raise to_http_exception(e)

@app.patch("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    room_id: UUID,
    request: UpdateRoomRequest,
    service: RoomService = Depends(get_room_service),
    actor: Actor = Depends(get_current_actor)
):
    """Change room type or price (admin)"""
    try:
        room = await service.update_room(
            actor=actor,
            room_id=room_id,
            room_type=request.room_type,
            price=request.price
        )
        return _room_to_response(room)
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/rooms/{room_id}/availability", response_model=AvailabilityResponse, tags=["Rooms"])
async def check_room_availability(
    room_id: UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: Optional[UUID] = None,
    service: AvailabilityService = Depends(get_availability_service),
    actor: Actor = Depends(get_current_actor)
):
    """Advisory availability check for one room"""
    try:
        available = await service.is_available(room_id, check_in, check_out, exclude_booking_id)
        return AvailabilityResponse(
            room_id=room_id, check_in=check_in, check_out=check_out, available=available
        )
    except DomainError as e:
        raise to_http_exception(e)

@app.patch("/api/rooms/{room_id}/status", response_model=RoomResponse, tags=["Housekeeping"])
async def update_room_status(
    room_id: UUID,
    request: UpdateRoomStatusRequest,
    service: HousekeepingService = Depends(get_housekeeping_service),
    actor: Actor = Depends(get_current_actor)
):
    """Advance housekeeping status (cleaner) or override it (admin)"""
    try:
        room = await service.update_status(actor, room_id, request.status)
        return _room_to_response(room)
    except DomainError as e:
        raise to_http_exception(e)

@app.post("/api/rooms/{room_id}/assign-cleaner", response_model=RoomResponse, tags=["Housekeeping"])
async def assign_cleaner(
    room_id: UUID,
    request: AssignCleanerRequest,
    service: HousekeepingService = Depends(get_housekeeping_service),
    actor: Actor = Depends(get_current_actor)
):
    """Assign a cleaner to a dirty or cleaning room (admin)"""
    try:
        room = await service.assign_cleaner(actor, room_id, request.cleaner_id)
        return _room_to_response(room)
    except DomainError as e:
        raise to_http_exception(e)

# ============================================================================
# BOOKING ENDPOINTS
# ============================================================================

@app.post("/api/bookings", response_model=BookingResponse, status_code=201, tags=["Bookings"])
async def create_booking(
    request: CreateBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Create a booking; fails if the room is taken for any of the nights"""
    try:
        booking = await service.create_booking(
            actor=actor,
            room_id=request.room_id,
            guest_name=request.guest_name,
            check_in=request.check_in,
            check_out=request.check_out
        )
        return _booking_to_response(booking)
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/bookings", response_model=List[BookingResponse], tags=["Bookings"])
async def list_bookings(
    status: Optional[BookingStatus] = None,
    room_id: Optional[UUID] = None,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """List bookings (guests only see their own)"""
    try:
        bookings = await service.list_bookings(actor, status=status, room_id=room_id)
        return [_booking_to_response(b) for b in bookings]
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/bookings/reference/{reference}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking_by_reference(
    reference: str,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get booking by reference"""
    try:
        return _booking_to_response(await service.get_booking_by_reference(actor, reference))
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/bookings/{booking_id}", response_model=BookingResponse, tags=["Bookings"])
async def get_booking(
    booking_id: UUID,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get booking by ID"""
    try:
        return _booking_to_response(await service.get_booking(actor, booking_id))
    except DomainError as e:
        raise to_http_exception(e)

@app.post("/api/bookings/{booking_id}/check-in", response_model=BookingResponse, tags=["Bookings"])
async def check_in(
    booking_id: UUID,
    request: CheckInRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Record the check-in payment and check the guest in"""
    try:
        booking = await service.check_in(
            actor=actor,
            booking_id=booking_id,
            amount=request.amount,
            payment_type=request.payment_type,
            payment_method=request.payment_method,
            notes=request.notes,
            early=request.early
        )
        return _booking_to_response(booking)
    except DomainError as e:
        raise to_http_exception(e)

@app.post("/api/bookings/{booking_id}/check-out", response_model=BookingResponse, tags=["Bookings"])
async def check_out(
    booking_id: UUID,
    request: CheckOutRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Check the guest out; early checkout needs confirm_early"""
    try:
        booking = await service.check_out(actor, booking_id, confirm_early=request.confirm_early)
        return _booking_to_response(booking)
    except DomainError as e:
        raise to_http_exception(e)

@app.post("/api/bookings/{booking_id}/cancel", response_model=BookingResponse, tags=["Bookings"])
async def cancel_booking(
    booking_id: UUID,
    request: CancelBookingRequest,
    service: BookingService = Depends(get_booking_service),
    actor: Actor = Depends(get_current_actor)
):
    """Cancel an upcoming booking"""
    try:
        booking = await service.cancel(actor, booking_id, reason=request.reason)
        return _booking_to_response(booking)
    except DomainError as e:
        raise to_http_exception(e)

# ============================================================================
# PAYMENT ENDPOINTS
# ============================================================================

@app.post("/api/bookings/{booking_id}/payments", response_model=PaymentResponse, status_code=201, tags=["Payments"])
async def create_payment(
    booking_id: UUID,
    request: CreatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """Record a payment or refund"""
    try:
        payment = await service.create_payment(
            actor=actor,
            booking_id=booking_id,
            amount=request.amount,
            payment_type=request.payment_type,
            payment_method=request.payment_method,
            notes=request.notes
        )
        return _payment_to_response(payment)
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/bookings/{booking_id}/payments", response_model=List[PaymentResponse], tags=["Payments"])
async def list_payments(
    booking_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """List a booking's payments, newest first"""
    try:
        payments = await service.list_payments(actor, booking_id)
        return [_payment_to_response(p) for p in payments]
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/bookings/{booking_id}/payments/summary", response_model=PaymentSummaryResponse, tags=["Payments"])
async def get_payment_summary(
    booking_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """Price, net paid and remaining balance (negative means overpaid)"""
    try:
        summary = await service.get_summary(actor, booking_id)
        return PaymentSummaryResponse(**summary.model_dump())
    except DomainError as e:
        raise to_http_exception(e)

@app.get("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def get_payment(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """Get payment by ID"""
    try:
        return _payment_to_response(await service.get_payment(actor, payment_id))
    except DomainError as e:
        raise to_http_exception(e)

@app.patch("/api/payments/{payment_id}", response_model=PaymentResponse, tags=["Payments"])
async def update_payment(
    payment_id: UUID,
    request: UpdatePaymentRequest,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """Correct a payment"""
    try:
        payment = await service.update_payment(
            actor=actor,
            payment_id=payment_id,
            amount=request.amount,
            payment_type=request.payment_type,
            payment_method=request.payment_method,
            notes=request.notes if "notes" in request.model_fields_set else UNSET
        )
        return _payment_to_response(payment)
    except DomainError as e:
        raise to_http_exception(e)

@app.delete("/api/payments/{payment_id}", status_code=204, tags=["Payments"])
async def delete_payment(
    payment_id: UUID,
    service: PaymentService = Depends(get_payment_service),
    actor: Actor = Depends(get_current_actor)
):
    """Delete a payment recorded by mistake"""
    try:
        await service.delete_payment(actor, payment_id)
        return Response(status_code=204)
    except DomainError as e:
        raise to_http_exception(e)

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _room_to_response(room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        room_id=room.room_id,
        number=room.number,
        room_type=room.room_type.value,
        price=room.price,
        status=room.status.value,
        assigned_cleaner_id=room.assigned_cleaner_id,
        created_at=room.created_at,
        modified_at=room.modified_at,
        version=room.version
    )

def _booking_to_response(booking) -> BookingResponse:
    """Convert Booking entity to BookingResponse"""
    return BookingResponse(
        booking_id=booking.booking_id,
        reference=booking.reference,
        room_id=booking.room_id,
        guest_name=booking.guest_name,
        check_in=booking.check_in,
        check_out=booking.check_out,
        nights=booking.date_range.nights(),
        price=booking.price,
        status=booking.status.value,
        creation_source=booking.creation_source.value,
        created_by=booking.created_by,
        cancellation_reason=booking.cancellation_reason,
        checked_in_at=booking.checked_in_at,
        checked_out_at=booking.checked_out_at,
        cancelled_at=booking.cancelled_at,
        created_at=booking.created_at,
        modified_at=booking.modified_at,
        version=booking.version
    )

def _payment_to_response(payment) -> PaymentResponse:
    """Convert Payment entity to PaymentResponse"""
    return PaymentResponse(
        payment_id=payment.payment_id,
        booking_id=payment.booking_id,
        amount=payment.amount,
        payment_type=payment.payment_type.value,
        payment_method=payment.payment_method.value,
        notes=payment.notes,
        created_by=payment.created_by,
        created_at=payment.created_at,
        updated_at=payment.updated_at
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
