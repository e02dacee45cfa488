"""
SQLite-backed booking store.

Reference implementation of the booking-creation collaborator: it owns
the commit-time overlap check and the provisional hold that keeps a window
reserved while the client pays.
"""

import logging
import sqlite3
import threading
import uuid
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import pendulum
from pendulum import Date, DateTime

from ..domain.exceptions import (
    BookingCreationError,
    BookingValidationError,
    BusyQueryError,
    DataSourceError,
    HoldExpiredError,
    InvalidDurationError,
    SlotNoLongerAvailableError,
)
from ..domain.models import BookingConfirmation, BookingRequest, BusyInterval, Duration, parse_hhmm
from ..domain.slot_calculator import window_is_free

logger = logging.getLogger(__name__)

STATUS_HELD = "held"
STATUS_CONFIRMED = "confirmed"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"

SCHEMA = """
CREATE TABLE IF NOT EXISTS busy_intervals (
    id TEXT PRIMARY KEY,
    provider_id TEXT NOT NULL,
    requester_name TEXT NOT NULL,
    requester_email TEXT NOT NULL,
    booking_date TEXT NOT NULL,
    start_time TEXT NOT NULL,
    duration_minutes INTEGER NOT NULL,
    total INTEGER NOT NULL,
    status TEXT NOT NULL,
    expires_at REAL,
    created_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_busy_intervals_provider_date
    ON busy_intervals (provider_id, booking_date);
"""


class SqliteBookingStore:
    """
    Stores reservations and serializes their creation.

    Creation runs inside ``BEGIN IMMEDIATE`` (one writer per database file)
    under a process lock, re-reads the provider's live intervals and only
    then inserts, so of two overlapping requests exactly one commits.

    New reservations start as ``held`` with an expiry; ``confirm_payment``
    makes them ``confirmed``. Lapsed holds stop blocking immediately (reads
    ignore them) and are marked ``expired`` by the next write or by
    ``release_expired_holds``.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        hold_minutes: int = 30,
        checkout_url: str = "https://checkout.example.com/pay",
        timezone: str = "America/Santiago",
        busy_timeout_seconds: float = 30.0,
    ):
        if hold_minutes < 1:
            raise ValueError(f"hold_minutes must be at least 1, got {hold_minutes}")

        path = Path(db_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(path)
        self.hold_minutes = hold_minutes
        self.checkout_url = checkout_url
        self.timezone = timezone
        self.busy_timeout_seconds = busy_timeout_seconds
        self._lock = threading.Lock()
        self._init_db()

    @classmethod
    def from_config(cls, config) -> "SqliteBookingStore":
        return cls(
            config.holds.database_path,
            hold_minutes=config.holds.hold_minutes,
            checkout_url=config.holds.checkout_url,
            timezone=config.timezone,
        )

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        try:
            with self._lock, closing(self._connect()) as conn:
                conn.executescript(SCHEMA)
        except sqlite3.Error as exc:
            raise DataSourceError(f"Could not open booking store {self.db_path}: {exc}") from exc

    def _now(self, now: Optional[DateTime]) -> DateTime:
        return now if now is not None else pendulum.now(self.timezone)

    def create_booking(self, request: BookingRequest, now: Optional[DateTime] = None) -> BookingConfirmation:
        """
        Reserve a window as a provisional hold.

        Raises:
            BookingValidationError: If the request is malformed
            SlotNoLongerAvailableError: If a live interval overlaps the window
            BookingCreationError: If the database fails
        """
        start_hhmm, duration = self._validate(request)
        now = self._now(now)
        expires_at = now.add(minutes=self.hold_minutes)
        booking_id = f"bk_{uuid.uuid4().hex[:12]}"
        day = request.date.isoformat()

        with self._write() as conn:
            self._expire_holds(conn, now)
            live = self._live_intervals(conn, request.provider_id, day, now)
            if not window_is_free(start_hhmm, duration.value, live):
                raise SlotNoLongerAvailableError(
                    f"{request.time} on {day} is no longer available"
                )
            conn.execute(
                """
                INSERT INTO busy_intervals (
                    id, provider_id, requester_name, requester_email, booking_date,
                    start_time, duration_minutes, total, status, expires_at, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    booking_id,
                    request.provider_id,
                    request.requester.name,
                    request.requester.email,
                    day,
                    request.time,
                    duration.value,
                    request.total,
                    STATUS_HELD,
                    expires_at.timestamp(),
                    now.timestamp(),
                ),
            )

        return BookingConfirmation(
            booking_id=booking_id,
            payment_url=f"{self.checkout_url}?booking_id={booking_id}",
            expires_at=expires_at,
        )

    def get_busy_intervals(self, provider_id: str, day: Date, now: Optional[DateTime] = None) -> List[BusyInterval]:
        """
        Live intervals of a provider on a date: confirmed ones and unexpired holds.

        Raises:
            BusyQueryError: If the database cannot be read
        """
        now = self._now(now)
        try:
            with closing(self._connect()) as conn:
                return self._live_intervals(conn, provider_id, day.isoformat(), now)
        except sqlite3.Error as exc:
            raise BusyQueryError(f"Could not read reservations: {exc}") from exc

    def confirm_payment(self, booking_id: str, now: Optional[DateTime] = None) -> None:
        """
        Turn a live hold into a confirmed reservation. Idempotent once confirmed.

        Raises:
            BookingValidationError: If the booking does not exist
            HoldExpiredError: If the hold lapsed or was cancelled first
            BookingCreationError: If the database fails
        """
        now = self._now(now)

        with self._write() as conn:
            row = conn.execute(
                "SELECT status, expires_at FROM busy_intervals WHERE id = ?",
                (booking_id,),
            ).fetchone()

            if row is None:
                raise BookingValidationError(f"Unknown booking: {booking_id}")

            status = row["status"]
            if status == STATUS_HELD and row["expires_at"] > now.timestamp():
                conn.execute(
                    "UPDATE busy_intervals SET status = ?, expires_at = NULL WHERE id = ?",
                    (STATUS_CONFIRMED, booking_id),
                )
                status = STATUS_CONFIRMED
            elif status == STATUS_HELD:
                conn.execute(
                    "UPDATE busy_intervals SET status = ? WHERE id = ?",
                    (STATUS_EXPIRED, booking_id),
                )
                status = STATUS_EXPIRED

        # Raised after commit so the expired status sticks
        if status != STATUS_CONFIRMED:
            raise HoldExpiredError(f"Booking {booking_id} is {status}, payment can no longer be applied")

    def cancel_booking(self, booking_id: str) -> bool:
        """Free a held or confirmed interval. Returns False if nothing was live."""
        with self._write() as conn:
            cursor = conn.execute(
                "UPDATE busy_intervals SET status = ? WHERE id = ? AND status IN (?, ?)",
                (STATUS_CANCELLED, booking_id, STATUS_HELD, STATUS_CONFIRMED),
            )
            return cursor.rowcount > 0

    def release_expired_holds(self, now: Optional[DateTime] = None) -> int:
        """Mark every lapsed hold as expired. Returns how many were released."""
        now = self._now(now)

        with self._write() as conn:
            released = self._expire_holds(conn, now)

        if released:
            logger.info("Released %d expired booking hold(s)", released)
        return released

    def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        try:
            with closing(self._connect()) as conn:
                row = conn.execute("SELECT * FROM busy_intervals WHERE id = ?", (booking_id,)).fetchone()
        except sqlite3.Error as exc:
            raise BusyQueryError(f"Could not read booking {booking_id}: {exc}") from exc
        return dict(row) if row else None

    @contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        """
        Serialized write transaction.

        Holds the process lock and ``BEGIN IMMEDIATE``; any exception rolls
        back, and database errors surface as ``BookingCreationError``.
        """
        try:
            with self._lock, closing(self._connect()) as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
        except sqlite3.Error as exc:
            raise BookingCreationError(f"Booking store write failed: {exc}") from exc

    def _expire_holds(self, conn: sqlite3.Connection, now: DateTime) -> int:
        cursor = conn.execute(
            "UPDATE busy_intervals SET status = ? WHERE status = ? AND expires_at <= ?",
            (STATUS_EXPIRED, STATUS_HELD, now.timestamp()),
        )
        return cursor.rowcount

    def _live_intervals(self, conn: sqlite3.Connection, provider_id: str, day: str, now: DateTime) -> List[BusyInterval]:
        rows = conn.execute(
            """
            SELECT start_time, duration_minutes FROM busy_intervals
            WHERE provider_id = ? AND booking_date = ?
              AND (status = ? OR (status = ? AND expires_at > ?))
            ORDER BY start_time
            """,
            (provider_id, day, STATUS_CONFIRMED, STATUS_HELD, now.timestamp()),
        ).fetchall()
        return [BusyInterval(start_time=row["start_time"], duration_minutes=row["duration_minutes"]) for row in rows]

    @staticmethod
    def _validate(request: BookingRequest) -> tuple[int, Duration]:
        try:
            duration = Duration.parse(request.duration)
        except InvalidDurationError as exc:
            raise BookingValidationError(str(exc)) from exc

        try:
            start_hhmm = parse_hhmm(request.time)
        except ValueError as exc:
            raise BookingValidationError(str(exc)) from exc

        if not request.provider_id:
            raise BookingValidationError("provider_id is required")
        if not request.requester.email or "@" not in request.requester.email:
            raise BookingValidationError(f"Invalid requester email: {request.requester.email!r}")
        if request.total < 0:
            raise BookingValidationError(f"Total must not be negative, got {request.total}")

        return start_hhmm, duration
