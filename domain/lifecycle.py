"""Transition tables for bookings and housekeeping.

Every permitted move is one row keyed by ``(from_status, to_status, role)``
and names the guard that must pass before the move is applied. Anything not
listed is refused.
"""
from datetime import date
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from domain.entities import Booking, Room
from domain.enums import BookingStatus, RoomStatus, Role
from domain.errors import (
    AlreadyInState, ForbiddenError, GuardViolation, InvalidTransition
)
from domain.value_objects import Actor


class TransitionContext(BaseModel):
    """Inputs a guard may look at besides the entity itself"""
    actor: Actor
    today: date
    early: bool = False

    class Config:
        frozen = True


BookingGuard = Callable[[Booking, TransitionContext], None]
RoomGuard = Callable[[Room, TransitionContext], None]


# ==================== BOOKING GUARDS ====================
def _no_guard(entity, ctx: TransitionContext) -> None:
    return None


def _check_in_day(booking: Booking, ctx: TransitionContext) -> None:
    if ctx.today == booking.check_in:
        return
    if ctx.early and ctx.today < booking.check_in:
        return
    if ctx.today < booking.check_in:
        raise GuardViolation(
            f"Check-in for {booking.reference} is on {booking.check_in}; "
            f"early check-in must be requested explicitly",
            code="EARLY_CHECK_IN_NOT_CONFIRMED"
        )
    raise GuardViolation(
        f"Check-in for {booking.reference} was due on {booking.check_in}",
        code="CHECK_IN_DATE_PASSED"
    )


def _check_out_day(booking: Booking, ctx: TransitionContext) -> None:
    if ctx.today >= booking.check_out or ctx.early:
        return
    raise GuardViolation(
        f"Booking {booking.reference} checks out on {booking.check_out}; "
        f"early checkout must be confirmed",
        code="EARLY_CHECKOUT_NOT_CONFIRMED"
    )


def _guest_owns_booking(booking: Booking, ctx: TransitionContext) -> None:
    if not booking.is_owned_by(ctx.actor.user_id):
        raise ForbiddenError("Guests may only cancel their own bookings")


BOOKING_TRANSITIONS: Dict[Tuple[BookingStatus, BookingStatus, Role], BookingGuard] = {
    (BookingStatus.UPCOMING, BookingStatus.CHECKED_IN, Role.RECEPTIONIST): _check_in_day,
    (BookingStatus.UPCOMING, BookingStatus.CHECKED_IN, Role.ADMIN): _check_in_day,
    (BookingStatus.UPCOMING, BookingStatus.CANCELLED, Role.RECEPTIONIST): _no_guard,
    (BookingStatus.UPCOMING, BookingStatus.CANCELLED, Role.ADMIN): _no_guard,
    (BookingStatus.UPCOMING, BookingStatus.CANCELLED, Role.GUEST): _guest_owns_booking,
    (BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT, Role.RECEPTIONIST): _check_out_day,
    (BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT, Role.ADMIN): _check_out_day,
}


# ==================== HOUSEKEEPING GUARDS ====================
def _assigned_cleaner(room: Room, ctx: TransitionContext) -> None:
    if not room.is_assigned_to(ctx.actor.user_id):
        raise ForbiddenError(f"Room {room.number} is not assigned to this cleaner")


_HOUSEKEEPING_STATES = (RoomStatus.DIRTY, RoomStatus.CLEANING, RoomStatus.AVAILABLE)

HOUSEKEEPING_TRANSITIONS: Dict[Tuple[RoomStatus, RoomStatus, Role], RoomGuard] = {
    (RoomStatus.DIRTY, RoomStatus.CLEANING, Role.CLEANER): _assigned_cleaner,
    (RoomStatus.CLEANING, RoomStatus.AVAILABLE, Role.CLEANER): _assigned_cleaner,
}
# Admin may move a room in any direction inside the housekeeping sub-machine.
HOUSEKEEPING_TRANSITIONS.update({
    (source, target, Role.ADMIN): _no_guard
    for source in _HOUSEKEEPING_STATES
    for target in _HOUSEKEEPING_STATES
    if source != target
})


# Ownership scopes checked before any state logic, so a foreign caller learns
# nothing about the entity's state.
BOOKING_SCOPES: Dict[Role, BookingGuard] = {Role.GUEST: _guest_owns_booking}
ROOM_SCOPES: Dict[Role, RoomGuard] = {Role.CLEANER: _assigned_cleaner}


# ==================== RESOLUTION ====================
def _roles_reaching(table: Dict, target) -> set:
    return {role for (_, to_status, role) in table if to_status == target}


def authorize_booking_transition(
    booking: Booking,
    target: BookingStatus,
    ctx: TransitionContext
) -> None:
    """Raise unless ``ctx.actor`` may move ``booking`` to ``target`` right now"""
    role = ctx.actor.role
    if role not in _roles_reaching(BOOKING_TRANSITIONS, target):
        raise ForbiddenError(
            f"Role {role.value} may not move bookings to {target.value}"
        )
    BOOKING_SCOPES.get(role, _no_guard)(booking, ctx)

    if booking.status == target:
        raise AlreadyInState(f"Booking {booking.reference} is already {target.value}")

    guard: Optional[BookingGuard] = BOOKING_TRANSITIONS.get((booking.status, target, role))
    if guard is None:
        raise InvalidTransition(
            f"Cannot move booking {booking.reference} from {booking.status.value} to {target.value}"
        )
    guard(booking, ctx)


def authorize_room_transition(
    room: Room,
    target: RoomStatus,
    ctx: TransitionContext
) -> None:
    """Raise unless ``ctx.actor`` may move ``room`` to ``target`` in housekeeping"""
    role = ctx.actor.role
    if role not in {row_role for (_, _, row_role) in HOUSEKEEPING_TRANSITIONS}:
        raise ForbiddenError(f"Role {role.value} has no part in housekeeping")
    ROOM_SCOPES.get(role, _no_guard)(room, ctx)

    if room.status == target:
        raise AlreadyInState(f"Room {room.number} is already {target.value}")
    if role not in _roles_reaching(HOUSEKEEPING_TRANSITIONS, target):
        raise ForbiddenError(
            f"Role {role.value} may not move rooms to {target.value}"
        )

    guard: Optional[RoomGuard] = HOUSEKEEPING_TRANSITIONS.get((room.status, target, role))
    if guard is None:
        raise InvalidTransition(
            f"Cannot move room {room.number} from {room.status.value} to {target.value}"
        )
    guard(room, ctx)
