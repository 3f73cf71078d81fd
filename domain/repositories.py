"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List
from uuid import UUID

from domain.entities import Room, Booking, Payment
from domain.enums import RoomStatus, RoomType, BookingStatus


class RoomRepository(ABC):
    """Repository interface for Room Aggregate"""

    @abstractmethod
    async def save(self, room: Room) -> Room:
        """Insert or replace room"""
        pass

    @abstractmethod
    async def find_by_id(self, room_id: UUID) -> Optional[Room]:
        """Find room by ID"""
        pass

    @abstractmethod
    async def find_by_number(self, number: str) -> Optional[Room]:
        """Find room by its unique number"""
        pass

    @abstractmethod
    async def find_all(
        self,
        status: Optional[RoomStatus] = None,
        room_type: Optional[RoomType] = None
    ) -> List[Room]:
        """Find rooms, optionally filtered, ordered by number"""
        pass

    @abstractmethod
    async def find_by_cleaner(self, cleaner_id: UUID) -> List[Room]:
        """Find rooms assigned to a cleaner"""
        pass


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Insert or replace booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        pass

    @abstractmethod
    async def find_by_reference(self, reference: str) -> Optional[Booking]:
        """Find booking by reference"""
        pass

    @abstractmethod
    async def find_by_room(self, room_id: UUID) -> List[Booking]:
        """Find all bookings on a room"""
        pass

    @abstractmethod
    async def find_all(
        self,
        status: Optional[BookingStatus] = None,
        room_id: Optional[UUID] = None,
        created_by: Optional[UUID] = None
    ) -> List[Booking]:
        """Find bookings, optionally filtered, latest check-in first"""
        pass


class PaymentRepository(ABC):
    """Repository interface for Payment entries"""

    @abstractmethod
    async def save(self, payment: Payment) -> Payment:
        """Insert or replace payment"""
        pass

    @abstractmethod
    async def find_by_id(self, payment_id: UUID) -> Optional[Payment]:
        """Find payment by ID"""
        pass

    @abstractmethod
    async def find_by_booking(self, booking_id: UUID) -> List[Payment]:
        """Find payments for a booking, newest first"""
        pass

    @abstractmethod
    async def delete(self, payment_id: UUID) -> bool:
        """Delete payment"""
        pass


def room_lock(room_id: UUID) -> str:
    """Lock key serializing every write that touches a room or its calendar"""
    return f"room:{room_id}"


def room_number_lock(number: str) -> str:
    """Lock key serializing registration of a room number"""
    return f"room-number:{number}"


def booking_lock(booking_id: UUID) -> str:
    """Lock key serializing every write and summary read on a booking's ledger"""
    return f"booking:{booking_id}"


class UnitOfWork(ABC):
    """Transaction boundary shared by the application services.

    ``transaction(*lock_keys)`` is an async context manager that holds an
    exclusive lock on every key for its whole body and commits on normal
    exit. Any exception undoes every write made inside the body.
    """

    rooms: RoomRepository
    bookings: BookingRepository
    payments: PaymentRepository

    @abstractmethod
    def transaction(self, *lock_keys: str):
        """Open a locked, all-or-nothing transaction"""
        pass
