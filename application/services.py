"""Application Services - Business use cases"""
import logging
from uuid import UUID
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional

from domain.repositories import UnitOfWork, room_lock, room_number_lock, booking_lock
from domain.entities import Room, Booking, Payment, UNSET, summarize_payments
from domain.enums import (
    RoomType, RoomStatus, BookingStatus, CreationSource, PaymentType, PaymentMethod, Role
)
from domain.errors import (
    AlreadyInState, BookingConflict, ConflictError, ForbiddenError, GuardViolation,
    NotFoundError, OverRefundError, SerializationFailure, ValidationError
)
from domain.lifecycle import (
    TransitionContext, authorize_booking_transition, authorize_room_transition
)
from domain.value_objects import Actor, DateRange, PaymentSummary

booking_logger = logging.getLogger("hotel.bookings")
payment_logger = logging.getLogger("hotel.payments")
housekeeping_logger = logging.getLogger("hotel.housekeeping")

HOUSEKEEPING_STATES = (RoomStatus.DIRTY, RoomStatus.CLEANING, RoomStatus.AVAILABLE)
MAX_REFERENCE_ATTEMPTS = 5


def _require_role(actor: Actor, *roles: Role) -> None:
    if actor.role not in roles:
        raise ForbiddenError(f"Role {actor.role.value} is not allowed to perform this action")


async def _load_room(uow: UnitOfWork, room_id: UUID) -> Room:
    room = await uow.rooms.find_by_id(room_id)
    if not room:
        raise NotFoundError(f"Room with ID '{room_id}' not found")
    return room


async def _load_booking(uow: UnitOfWork, booking_id: UUID) -> Booking:
    booking = await uow.bookings.find_by_id(booking_id)
    if not booking:
        raise NotFoundError(f"Booking with ID '{booking_id}' not found")
    return booking


def _ensure_can_view(actor: Actor, booking: Booking) -> None:
    """Staff see every booking; guests only their own.

    A guest reading someone else's booking is told it does not exist.
    """
    if actor.is_staff:
        return
    if actor.role == Role.GUEST:
        if booking.is_owned_by(actor.user_id):
            return
        raise NotFoundError("Booking not found")
    raise ForbiddenError("You do not have access to this booking")


class RoomService:
    """Service for the room registry"""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_room(
        self,
        actor: Actor,
        number: str,
        room_type: RoomType,
        price: Decimal
    ) -> Room:
        """Register a new room; numbers are unique"""
        _require_role(actor, Role.ADMIN)
        room = Room.create(number=number, room_type=room_type, price=price)
        async with self.uow.transaction(room_number_lock(room.number)):
            if await self.uow.rooms.find_by_number(room.number):
                raise ConflictError(
                    f"Room number {room.number} is already in use",
                    code="ROOM_NUMBER_TAKEN"
                )
            return await self.uow.rooms.save(room)

    async def update_room(
        self,
        actor: Actor,
        room_id: UUID,
        room_type: Optional[RoomType] = None,
        price: Optional[Decimal] = None
    ) -> Room:
        """Change a room's type or price"""
        _require_role(actor, Role.ADMIN)
        async with self.uow.transaction(room_lock(room_id)):
            room = await _load_room(self.uow, room_id)
            room.update_details(room_type=room_type, price=price)
            return await self.uow.rooms.save(room)

    async def get_room(self, room_id: UUID) -> Room:
        return await _load_room(self.uow, room_id)

    async def list_rooms(
        self,
        status: Optional[RoomStatus] = None,
        room_type: Optional[RoomType] = None
    ) -> List[Room]:
        return await self.uow.rooms.find_all(status=status, room_type=room_type)

    async def list_assigned_rooms(self, actor: Actor, cleaner_id: Optional[UUID] = None) -> List[Room]:
        """Rooms assigned to a cleaner. Cleaners may only ask about themselves."""
        if actor.role == Role.CLEANER:
            if cleaner_id is not None and cleaner_id != actor.user_id:
                raise ForbiddenError("Cleaners can only list their own rooms")
            cleaner_id = actor.user_id
        else:
            _require_role(actor, Role.ADMIN, Role.RECEPTIONIST)
            if cleaner_id is None:
                raise ValidationError("cleaner_id is required")
        return await self.uow.rooms.find_by_cleaner(cleaner_id)


class AvailabilityService:
    """Answers "is this room free for these nights?"

    Reads here are not locked and are advisory. The booking write path calls
    ``find_conflicts`` again while it holds the room lock.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def is_available(
        self,
        room_id: UUID,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[UUID] = None
    ) -> bool:
        date_range = DateRange.between(check_in, check_out)
        await _load_room(self.uow, room_id)
        conflicts = await self.find_conflicts(room_id, date_range, exclude_booking_id)
        return not conflicts

    async def find_conflicts(
        self,
        room_id: UUID,
        date_range: DateRange,
        exclude_booking_id: Optional[UUID] = None
    ) -> List[Booking]:
        """Active bookings on the room whose nights intersect ``date_range``"""
        bookings = await self.uow.bookings.find_by_room(room_id)
        return [
            b for b in bookings
            if b.booking_id != exclude_booking_id and b.blocks(date_range)
        ]

    async def find_available_rooms(
        self,
        check_in: date,
        check_out: date,
        room_type: Optional[RoomType] = None
    ) -> List[Room]:
        """Bookable rooms with no active booking in the range"""
        date_range = DateRange.between(check_in, check_out)
        rooms = await self.uow.rooms.find_all(room_type=room_type)
        available = []
        for room in rooms:
            if not room.is_bookable():
                continue
            if not await self.find_conflicts(room.room_id, date_range):
                available.append(room)
        return available


class PaymentService:
    """Payment ledger for bookings.

    No balance is ever stored: summaries are recomputed from the full
    payment history, and every read or write holds the booking's lock so a
    summary never observes half of another request's changes.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def create_payment(
        self,
        actor: Actor,
        booking_id: UUID,
        amount: Decimal,
        payment_type: PaymentType,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None
    ) -> Payment:
        """Record a payment or refund against a booking"""
        _require_role(actor, Role.ADMIN, Role.RECEPTIONIST)
        async with self.uow.transaction(booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            return await self.append_entry(
                booking, actor, amount, payment_type, payment_method, notes
            )

    async def append_entry(
        self,
        booking: Booking,
        actor: Actor,
        amount: Decimal,
        payment_type: PaymentType,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None
    ) -> Payment:
        """Insert one ledger entry. The caller must hold the booking lock."""
        payment = Payment.create(
            booking_id=booking.booking_id,
            amount=amount,
            payment_type=payment_type,
            payment_method=payment_method,
            created_by=actor.user_id,
            notes=notes
        )
        history = await self.uow.payments.find_by_booking(booking.booking_id)
        self._ensure_not_over_refunded(booking, history + [payment])
        await self.uow.payments.save(payment)
        payment_logger.info(
            "Recorded %s of %s on booking %s", payment.payment_type.value, payment.amount, booking.reference
        )
        return payment

    async def update_payment(
        self,
        actor: Actor,
        payment_id: UUID,
        amount: Optional[Decimal] = None,
        payment_type: Optional[PaymentType] = None,
        payment_method: Optional[PaymentMethod] = None,
        notes=UNSET
    ) -> Payment:
        """Correct an existing entry"""
        _require_role(actor, Role.ADMIN, Role.RECEPTIONIST)
        booking_id = (await self._load_payment(payment_id)).booking_id
        async with self.uow.transaction(booking_lock(booking_id)):
            payment = await self._load_payment(payment_id)
            booking = await _load_booking(self.uow, booking_id)
            payment.correct(
                amount=amount,
                payment_type=payment_type,
                payment_method=payment_method,
                notes=notes
            )
            history = await self.uow.payments.find_by_booking(booking_id)
            others = [p for p in history if p.payment_id != payment_id]
            self._ensure_not_over_refunded(booking, others + [payment])
            await self.uow.payments.save(payment)
        payment_logger.info("Corrected payment %s on booking %s", payment_id, booking.reference)
        return payment

    async def delete_payment(self, actor: Actor, payment_id: UUID) -> None:
        """Remove an entry recorded by mistake"""
        _require_role(actor, Role.ADMIN, Role.RECEPTIONIST)
        booking_id = (await self._load_payment(payment_id)).booking_id
        async with self.uow.transaction(booking_lock(booking_id)):
            await self._load_payment(payment_id)
            booking = await _load_booking(self.uow, booking_id)
            history = await self.uow.payments.find_by_booking(booking_id)
            remaining = [p for p in history if p.payment_id != payment_id]
            # A stay that has started keeps the payment recorded at check-in.
            if not remaining and booking.status in (BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT):
                raise GuardViolation(
                    f"Booking {booking.reference} is {booking.status.value} and must keep at least one payment",
                    code="PAYMENT_REQUIRED"
                )
            self._ensure_not_over_refunded(booking, remaining)
            await self.uow.payments.delete(payment_id)
        payment_logger.info("Deleted payment %s on booking %s", payment_id, booking.reference)

    async def get_payment(self, actor: Actor, payment_id: UUID) -> Payment:
        payment = await self._load_payment(payment_id)
        booking = await _load_booking(self.uow, payment.booking_id)
        _ensure_can_view(actor, booking)
        return payment

    async def list_payments(self, actor: Actor, booking_id: UUID) -> List[Payment]:
        async with self.uow.transaction(booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            _ensure_can_view(actor, booking)
            return await self.uow.payments.find_by_booking(booking_id)

    async def get_summary(self, actor: Actor, booking_id: UUID) -> PaymentSummary:
        """Price, net paid and remaining balance, recomputed from history"""
        async with self.uow.transaction(booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            _ensure_can_view(actor, booking)
            payments = await self.uow.payments.find_by_booking(booking_id)
            return summarize_payments(booking, payments)

    async def _load_payment(self, payment_id: UUID) -> Payment:
        payment = await self.uow.payments.find_by_id(payment_id)
        if not payment:
            raise NotFoundError(f"Payment with ID '{payment_id}' not found")
        return payment

    @staticmethod
    def _ensure_not_over_refunded(booking: Booking, payments: List[Payment]) -> None:
        # Refunds may never exceed what has actually been received.
        summary = summarize_payments(booking, payments)
        if summary.total_paid < 0:
            raise OverRefundError(
                f"Refunds would exceed the amount received for booking {booking.reference} "
                f"(net paid would be {summary.total_paid})"
            )


class BookingService:
    """Booking lifecycle: creation, check-in, check-out and cancellation"""

    def __init__(
        self,
        uow: UnitOfWork,
        availability: Optional[AvailabilityService] = None,
        payments: Optional[PaymentService] = None,
        clock: Callable[[], date] = date.today,
        create_retries: int = 1
    ):
        self.uow = uow
        self.availability = availability or AvailabilityService(uow)
        self.payments = payments or PaymentService(uow)
        self.clock = clock
        self.create_retries = create_retries

    async def create_booking(
        self,
        actor: Actor,
        room_id: UUID,
        guest_name: str,
        check_in: date,
        check_out: date
    ) -> Booking:
        """Create an upcoming booking if the room is free for the whole range"""
        _require_role(actor, Role.ADMIN, Role.RECEPTIONIST, Role.GUEST)
        date_range = DateRange.between(check_in, check_out)
        source = CreationSource.GUEST if actor.role == Role.GUEST else CreationSource.STAFF

        attempts = self.create_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._insert_booking(actor, room_id, guest_name, date_range, source)
            except SerializationFailure:
                if attempt >= attempts:
                    booking_logger.error(
                        "Giving up on booking room %s after %d attempt(s)", room_id, attempt
                    )
                    raise
                booking_logger.warning(
                    "Serialization failure booking room %s, retrying (%d/%d)", room_id, attempt, attempts
                )

    async def _insert_booking(
        self,
        actor: Actor,
        room_id: UUID,
        guest_name: str,
        date_range: DateRange,
        source: CreationSource
    ) -> Booking:
        # Conflict check and insert share one room lock; a second writer for
        # the same room waits here and then sees the first writer's booking.
        async with self.uow.transaction(room_lock(room_id)):
            room = await _load_room(self.uow, room_id)
            if not room.is_bookable():
                raise ConflictError(
                    f"Room {room.number} is under maintenance and cannot be booked",
                    code="ROOM_UNAVAILABLE"
                )

            conflicts = await self.availability.find_conflicts(room_id, date_range)
            if conflicts:
                raise BookingConflict(
                    f"Room {room.number} is already booked between {date_range.check_in} "
                    f"and {date_range.check_out} ({', '.join(b.reference for b in conflicts)})"
                )

            today = self.clock()
            booking = Booking.create(
                room=room,
                guest_name=guest_name,
                date_range=date_range,
                created_by=actor.user_id,
                creation_source=source,
                today=today
            )
            for _ in range(MAX_REFERENCE_ATTEMPTS):
                if not await self.uow.bookings.find_by_reference(booking.reference):
                    break
                booking.reference = Booking.generate_reference(today)
            else:
                raise ConflictError("Could not allocate a unique booking reference")

            await self.uow.bookings.save(booking)

        booking_logger.info(
            "Booked room %s for %s..%s as %s",
            room.number, date_range.check_in, date_range.check_out, booking.reference
        )
        return booking

    async def check_in(
        self,
        actor: Actor,
        booking_id: UUID,
        amount: Decimal,
        payment_type: PaymentType = PaymentType.DEPOSIT,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None,
        early: bool = False
    ) -> Booking:
        """Record the check-in payment and occupy the room in one transaction"""
        if payment_type == PaymentType.REFUND:
            raise ValidationError("The check-in payment cannot be a refund")

        room_id = (await _load_booking(self.uow, booking_id)).room_id
        async with self.uow.transaction(room_lock(room_id), booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            ctx = TransitionContext(actor=actor, today=self.clock(), early=early)
            authorize_booking_transition(booking, BookingStatus.CHECKED_IN, ctx)

            room = await _load_room(self.uow, room_id)
            await self.payments.append_entry(
                booking, actor, amount, payment_type, payment_method, notes
            )
            booking.mark_checked_in()
            room.occupy(booking.booking_id)
            await self.uow.bookings.save(booking)
            await self.uow.rooms.save(room)

        booking_logger.info(
            "Checked in %s to room %s%s", booking.reference, room.number, " (early)" if early else ""
        )
        return booking

    async def check_out(
        self,
        actor: Actor,
        booking_id: UUID,
        confirm_early: bool = False
    ) -> Booking:
        """Close the stay; the room goes to housekeeping as dirty"""
        room_id = (await _load_booking(self.uow, booking_id)).room_id
        async with self.uow.transaction(room_lock(room_id), booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            ctx = TransitionContext(actor=actor, today=self.clock(), early=confirm_early)
            authorize_booking_transition(booking, BookingStatus.CHECKED_OUT, ctx)

            room = await _load_room(self.uow, room_id)
            booking.mark_checked_out()
            room.vacate()
            await self.uow.bookings.save(booking)
            await self.uow.rooms.save(room)

        booking_logger.info("Checked out %s, room %s is now dirty", booking.reference, room.number)
        return booking

    async def cancel(
        self,
        actor: Actor,
        booking_id: UUID,
        reason: Optional[str] = None
    ) -> Booking:
        """Cancel an upcoming booking and free its nights"""
        room_id = (await _load_booking(self.uow, booking_id)).room_id
        async with self.uow.transaction(room_lock(room_id), booking_lock(booking_id)):
            booking = await _load_booking(self.uow, booking_id)
            ctx = TransitionContext(actor=actor, today=self.clock())
            authorize_booking_transition(booking, BookingStatus.CANCELLED, ctx)

            booking.mark_cancelled(reason)
            await self.uow.bookings.save(booking)

            room = await _load_room(self.uow, room_id)
            if room.release(booking.booking_id):
                await self.uow.rooms.save(room)
                booking_logger.info("Released room %s held by %s", room.number, booking.reference)

        booking_logger.info("Cancelled %s (%s)", booking.reference, reason or "no reason given")
        return booking

    async def get_booking(self, actor: Actor, booking_id: UUID) -> Booking:
        booking = await _load_booking(self.uow, booking_id)
        _ensure_can_view(actor, booking)
        return booking

    async def get_booking_by_reference(self, actor: Actor, reference: str) -> Booking:
        booking = await self.uow.bookings.find_by_reference(reference)
        if not booking:
            raise NotFoundError(f"Booking with reference '{reference}' not found")
        _ensure_can_view(actor, booking)
        return booking

    async def list_bookings(
        self,
        actor: Actor,
        status: Optional[BookingStatus] = None,
        room_id: Optional[UUID] = None
    ) -> List[Booking]:
        """Staff see every booking; guests only the ones they created"""
        _require_role(actor, Role.ADMIN, Role.RECEPTIONIST, Role.GUEST)
        created_by = actor.user_id if actor.role == Role.GUEST else None
        return await self.uow.bookings.find_all(status=status, room_id=room_id, created_by=created_by)


class HousekeepingService:
    """Room cleaning workflow: dirty -> cleaning -> available"""

    def __init__(self, uow: UnitOfWork, clock: Callable[[], date] = date.today):
        self.uow = uow
        self.clock = clock

    async def update_status(self, actor: Actor, room_id: UUID, status: RoomStatus) -> Room:
        """Move a room's status.

        Moves inside dirty/cleaning/available go through the housekeeping
        transition table. Anything involving maintenance is an admin override.
        ``occupied`` is owned by check-in/check-out and cannot be set here.
        """
        async with self.uow.transaction(room_lock(room_id)):
            room = await _load_room(self.uow, room_id)
            previous = room.status

            if status in HOUSEKEEPING_STATES and room.status in HOUSEKEEPING_STATES:
                ctx = TransitionContext(actor=actor, today=self.clock())
                authorize_room_transition(room, status, ctx)
            else:
                self._authorize_override(actor, room, status)

            room.change_status(status)
            await self.uow.rooms.save(room)

        housekeeping_logger.info(
            "Room %s: %s -> %s by %s", room.number, previous.value, status.value, actor.role.value
        )
        return room

    async def assign_cleaner(
        self,
        actor: Actor,
        room_id: UUID,
        cleaner_id: Optional[UUID]
    ) -> Room:
        """Assign (or clear, with None) the cleaner responsible for a room"""
        _require_role(actor, Role.ADMIN)
        async with self.uow.transaction(room_lock(room_id)):
            room = await _load_room(self.uow, room_id)
            room.assign_cleaner(cleaner_id)
            await self.uow.rooms.save(room)

        housekeeping_logger.info("Room %s assigned to cleaner %s", room.number, cleaner_id)
        return room

    @staticmethod
    def _authorize_override(actor: Actor, room: Room, status: RoomStatus) -> None:
        _require_role(actor, Role.ADMIN)
        if RoomStatus.OCCUPIED in (status, room.status):
            raise GuardViolation(
                f"Room {room.number} occupancy is managed by check-in and check-out"
            )
        if room.status == status:
            raise AlreadyInState(f"Room {room.number} is already {status.value}")
