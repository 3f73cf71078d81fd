"""In-Memory Repository Implementations

Entities are copied on the way in and on the way out, so a caller mutating
an entity it loaded changes nothing until it calls ``save``.
"""
from typing import Optional, List, Dict
from uuid import UUID

from domain.repositories import RoomRepository, BookingRepository, PaymentRepository
from domain.entities import Room, Booking, Payment
from domain.enums import RoomStatus, RoomType, BookingStatus
from domain.errors import ConflictError
from infrastructure.unit_of_work import journal_write


class InMemoryRoomRepository(RoomRepository):
    """In-memory implementation of RoomRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Room] = {}

    async def save(self, room: Room) -> Room:
        """Save room to memory, enforcing unique room numbers"""
        for other in self._storage.values():
            if other.number == room.number and other.room_id != room.room_id:
                raise ConflictError(
                    f"Room number {room.number} is already in use",
                    code="ROOM_NUMBER_TAKEN"
                )
        journal_write(self._storage, room.room_id)
        self._storage[room.room_id] = room.model_copy(deep=True)
        return room

    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        room = self._storage.get(room_id)
        return room.model_copy(deep=True) if room else None

    async def find_by_number(self, number: str) -> Optional[Room]:
        """Find room by number"""
        for room in self._storage.values():
            if room.number == number:
                return room.model_copy(deep=True)
        return None

    async def find_all(
        self,
        status: Optional[RoomStatus] = None,
        room_type: Optional[RoomType] = None
    ) -> List[Room]:
        """Find rooms, optionally filtered"""
        rooms = [
            r for r in self._storage.values()
            if (status is None or r.status == status)
            and (room_type is None or r.room_type == room_type)
        ]
        return [r.model_copy(deep=True) for r in sorted(rooms, key=lambda r: r.number)]

    async def find_by_cleaner(self, cleaner_id: UUID) -> List[Room]:
        """Find rooms assigned to a cleaner"""
        rooms = [r for r in self._storage.values() if r.assigned_cleaner_id == cleaner_id]
        return [r.model_copy(deep=True) for r in sorted(rooms, key=lambda r: r.number)]


class InMemoryBookingRepository(BookingRepository):
    """In-memory implementation of BookingRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Booking] = {}

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        for other in self._storage.values():
            if other.reference == booking.reference and other.booking_id != booking.booking_id:
                raise ConflictError(
                    f"Booking reference {booking.reference} is already in use",
                    code="REFERENCE_TAKEN"
                )
        journal_write(self._storage, booking.booking_id)
        self._storage[booking.booking_id] = booking.model_copy(deep=True)
        return booking

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        booking = self._storage.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def find_by_reference(self, reference: str) -> Optional[Booking]:
        """Find booking by reference"""
        for booking in self._storage.values():
            if booking.reference == reference:
                return booking.model_copy(deep=True)
        return None

    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find all bookings on a room"""
        return [b.model_copy(deep=True) for b in self._storage.values() if b.room_id == room_id]

    async def find_all(
        self,
        status: Optional[BookingStatus] = None,
        room_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None
    ) -> List[Booking]:
        """Find bookings, optionally filtered, latest check-in first"""
        bookings = [
            b for b in self._storage.values()
            if (status is None or b.status == status)
            and (room_id is None or b.room_id == room_id)
            and (created_by is None or b.created_by == created_by)
        ]
        bookings.sort(key=lambda b: (b.date_range.check_in, b.created_at), reverse=True)
        return [b.model_copy(deep=True) for b in bookings]


class InMemoryPaymentRepository(PaymentRepository):
    """In-memory implementation of PaymentRepository"""

    def __init__(self):
        self._storage: Dict[UUID, Payment] = {}

    async def save(self, payment: Payment) -> Payment:
        """Save payment to memory"""
        journal_write(self._storage, payment.payment_id)
        self._storage[payment.payment_id] = payment.model_copy(deep=True)
        return payment

    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        payment = self._storage.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    async def find_by_booking(self, booking_id: UUID) -> List[Payment]:
        """Find payments for a booking, newest first"""
        payments = [p for p in self._storage.values() if p.booking_id == booking_id]
        payments.sort(key=lambda p: p.created_at, reverse=True)
        return [p.model_copy(deep=True) for p in payments]

    async def delete(self, payment_id: UUID) -> bool:
        """Delete payment"""
        if payment_id in self._storage:
            journal_write(self._storage, payment_id)
            del self._storage[payment_id]
            return True
        return False
