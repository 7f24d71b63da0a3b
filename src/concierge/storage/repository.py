"""
Concierge Repository

Durable storage for bookings, properties, communications and approvals.
Supports SQLite and PostgreSQL via the ``concierge.storage.db`` wrapper.

Schema:
- properties: one row per holiday home, including secure access fields
- bookings: guest stays, keyed by booking_id
- communications: inbound and outbound messages, drafts included
- approvals: human review units

All methods are synchronous and serialized on a single lock; async
callers go through ``asyncio.to_thread``. Approval resolution is a
conditional update, so of two concurrent resolutions only the first
changes the row.
"""

import json
import threading
from datetime import UTC, date, datetime, timedelta
from typing import Any

from concierge.core.models import (
    Approval,
    ApprovalStatus,
    ApprovalType,
    Booking,
    BookingContext,
    Communication,
    IdentityVerification,
    Property,
    RiskFlag,
)
from concierge.safety.guardrails import parse_date
from concierge.storage.db import connect

_PROPERTY_COLUMNS = [
    "property_id", "name", "address", "wifi_ssid", "wifi_password",
    "checkin_time", "checkout_time", "parking_instructions",
    "access_instructions_public", "access_instructions_secure", "house_rules",
]

_BOOKING_COLUMNS = [
    "booking_id", "channel", "guest_name", "guest_email", "guest_phone",
    "property_id", "arrival_date", "departure_date", "num_guests", "pets",
    "status", "notes",
]

_COMMUNICATION_COLUMNS = [
    "comm_id", "booking_id", "direction", "channel", "subject", "body",
    "draft", "sent_at", "approved_by", "approved_at", "thread_id",
    "from_address", "to_address", "in_reply_to", "created_at",
]

_APPROVAL_COLUMNS = [
    "approval_id", "type", "payload", "status", "created_at", "resolved_at",
    "assignee", "comm_id", "risk_flags", "confidence_score",
]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Repository:
    """Database-backed storage for the receptionist's records."""

    def __init__(self, db_url: str = "concierge.db"):
        """Initialize repository.

        Args:
            db_url: Database URL. Use ``postgresql://...`` for PostgreSQL
                    or a file path / ``:memory:`` for SQLite.
        """
        self._db_url = db_url
        self._conn = connect(db_url)
        self._lock = threading.Lock()
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS properties (
                property_id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                address TEXT DEFAULT '',
                wifi_ssid TEXT,
                wifi_password TEXT,
                checkin_time TEXT DEFAULT '3:00 PM',
                checkout_time TEXT DEFAULT '10:00 AM',
                parking_instructions TEXT,
                access_instructions_public TEXT,
                access_instructions_secure TEXT,
                house_rules TEXT
            );

            CREATE TABLE IF NOT EXISTS bookings (
                booking_id TEXT PRIMARY KEY,
                channel TEXT DEFAULT 'Direct',
                guest_name TEXT NOT NULL,
                guest_email TEXT NOT NULL,
                guest_phone TEXT,
                property_id TEXT NOT NULL,
                arrival_date TEXT NOT NULL,
                departure_date TEXT NOT NULL,
                num_guests INTEGER DEFAULT 1,
                pets INTEGER DEFAULT 0,
                status TEXT DEFAULT 'confirmed',
                notes TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_bookings_email ON bookings(guest_email);

            CREATE TABLE IF NOT EXISTS communications (
                comm_id TEXT PRIMARY KEY,
                booking_id TEXT,
                direction TEXT NOT NULL,
                channel TEXT DEFAULT 'email',
                subject TEXT,
                body TEXT NOT NULL,
                draft INTEGER DEFAULT 0,
                sent_at TEXT,
                approved_by TEXT,
                approved_at TEXT,
                thread_id TEXT,
                from_address TEXT,
                to_address TEXT,
                in_reply_to TEXT,
                created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_comms_thread ON communications(thread_id);
            CREATE INDEX IF NOT EXISTS idx_comms_booking ON communications(booking_id);

            CREATE TABLE IF NOT EXISTS approvals (
                approval_id TEXT PRIMARY KEY,
                type TEXT NOT NULL,
                payload TEXT DEFAULT '{}',
                status TEXT DEFAULT 'pending',
                created_at TEXT NOT NULL,
                resolved_at TEXT,
                assignee TEXT,
                comm_id TEXT,
                risk_flags TEXT DEFAULT '[]',
                confidence_score REAL
            );

            CREATE INDEX IF NOT EXISTS idx_approvals_status ON approvals(status)
        """)
        self._conn.commit()

    # ─── Properties ──────────────────────────────────────────

    def save_property(self, prop: Property) -> None:
        values = tuple(getattr(prop, c) for c in _PROPERTY_COLUMNS)
        with self._lock:
            self._conn.upsert("properties", "property_id", _PROPERTY_COLUMNS, values)
            self._conn.commit()

    def get_property(self, property_id: str) -> Property | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM properties WHERE property_id = ?", (property_id,)
            ).fetchone()
        return Property(**row) if row else None

    # ─── Bookings ────────────────────────────────────────────

    def save_booking(self, booking: Booking) -> None:
        values = (
            booking.booking_id,
            booking.channel.value,
            booking.guest_name,
            booking.guest_email,
            booking.guest_phone,
            booking.property_id,
            booking.arrival_date.isoformat(),
            booking.departure_date.isoformat(),
            booking.num_guests,
            int(booking.pets),
            booking.status.value,
            booking.notes,
        )
        with self._lock:
            self._conn.upsert("bookings", "booking_id", _BOOKING_COLUMNS, values)
            self._conn.commit()

    def get_booking(self, booking_id: str) -> Booking | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM bookings WHERE booking_id = ?", (booking_id,)
            ).fetchone()
        return self._row_to_booking(row) if row else None

    def find_bookings_by_email(self, email: str, arrival_date: date | None = None) -> list[Booking]:
        return self._find_bookings("LOWER(guest_email) = ?", email.strip().lower(), arrival_date)

    def find_bookings_by_name(self, name: str, arrival_date: date | None = None) -> list[Booking]:
        """Case-insensitive containment match on the guest name."""
        return self._find_bookings("LOWER(guest_name) LIKE ?", f"%{name.strip().lower()}%", arrival_date)

    def find_bookings_by_phone(self, phone: str, arrival_date: date | None = None) -> list[Booking]:
        return self._find_bookings("guest_phone = ?", phone.strip(), arrival_date)

    def _find_bookings(self, clause: str, value: str, arrival_date: date | None) -> list[Booking]:
        sql = f"SELECT * FROM bookings WHERE {clause}"
        params: tuple = (value,)
        if arrival_date is not None:
            sql += " AND SUBSTR(arrival_date, 1, 10) = ?"
            params += (arrival_date.isoformat(),)
        sql += " ORDER BY arrival_date DESC"

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [self._row_to_booking(r) for r in rows]

    def get_booking_context(
        self,
        email: str | None = None,
        name: str | None = None,
        phone: str | None = None,
        arrival_date: date | None = None,
    ) -> list[BookingContext]:
        """Bookings matching the guest, joined with property and prior comms.

        Email is tried first, then name, then phone; the first lookup that
        returns anything wins.
        """
        bookings: list[Booking] = []
        if email:
            bookings = self.find_bookings_by_email(email, arrival_date)
        if not bookings and name:
            bookings = self.find_bookings_by_name(name, arrival_date)
        if not bookings and phone:
            bookings = self.find_bookings_by_phone(phone, arrival_date)

        return [
            BookingContext(
                booking=b,
                property=self.get_property(b.property_id),
                previous_comms=self.communications_by_booking(b.booking_id),
            )
            for b in bookings
        ]

    def verify_identity(self, booking_id: str, provided_answers: dict[str, str]) -> IdentityVerification:
        """Check each supplied answer against the booking record.

        Only the answers given are checked. Property names match when
        either contains the other.
        """
        booking = self.get_booking(booking_id)
        if booking is None:
            return IdentityVerification(verified=False, reason="Booking not found")

        name = provided_answers.get("guest_name")
        if name and name.strip().lower() != booking.guest_name.strip().lower():
            return IdentityVerification(verified=False, reason="Name does not match booking record")

        email = provided_answers.get("guest_email")
        if email and email.strip().lower() != booking.guest_email.strip().lower():
            return IdentityVerification(verified=False, reason="Email does not match booking record")

        arrival = provided_answers.get("arrival_date")
        if arrival and parse_date(arrival) != booking.arrival_date.date():
            return IdentityVerification(verified=False, reason="Arrival date does not match booking record")

        property_name = provided_answers.get("property_name")
        if property_name:
            prop = self.get_property(booking.property_id)
            if prop is None:
                return IdentityVerification(
                    verified=False,
                    reason="Property information not available for verification",
                )
            given, expected = property_name.strip().lower(), prop.name.strip().lower()
            if given not in expected and expected not in given:
                return IdentityVerification(
                    verified=False,
                    reason="Property name does not match booking record",
                )

        return IdentityVerification(verified=True)

    # ─── Communications ──────────────────────────────────────

    def save_communication(self, comm: Communication) -> Communication:
        values = (
            comm.comm_id,
            comm.booking_id,
            comm.direction.value,
            comm.channel.value,
            comm.subject,
            comm.body,
            int(comm.draft),
            _iso(comm.sent_at),
            comm.approved_by,
            _iso(comm.approved_at),
            comm.thread_id,
            comm.from_address,
            comm.to_address,
            comm.in_reply_to,
            comm.created_at.isoformat(),
        )
        with self._lock:
            self._conn.upsert("communications", "comm_id", _COMMUNICATION_COLUMNS, values)
            self._conn.commit()
        return comm

    def get_communication(self, comm_id: str) -> Communication | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM communications WHERE comm_id = ?", (comm_id,)
            ).fetchone()
        return self._row_to_communication(row) if row else None

    def communications_by_thread(self, thread_id: str) -> list[Communication]:
        """Oldest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM communications WHERE thread_id = ? ORDER BY created_at ASC",
                (thread_id,),
            ).fetchall()
        return [self._row_to_communication(r) for r in rows]

    def communications_by_booking(self, booking_id: str) -> list[Communication]:
        """Oldest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM communications WHERE booking_id = ? ORDER BY created_at ASC",
                (booking_id,),
            ).fetchall()
        return [self._row_to_communication(r) for r in rows]

    def mark_communication_approved(self, comm_id: str, approved_by: str) -> bool:
        with self._lock:
            self._conn.execute(
                "UPDATE communications SET approved_by = ?, approved_at = ? WHERE comm_id = ?",
                (approved_by, datetime.now(UTC).isoformat(), comm_id),
            )
            changed = self._conn.rowcount
            self._conn.commit()
        return changed == 1

    # ─── Approvals ───────────────────────────────────────────

    def save_approval(self, approval: Approval) -> Approval:
        values = (
            approval.approval_id,
            approval.type.value,
            json.dumps(approval.payload, default=str),
            approval.status.value,
            approval.created_at.isoformat(),
            _iso(approval.resolved_at),
            approval.assignee,
            approval.comm_id,
            json.dumps([f.value for f in approval.risk_flags]),
            approval.confidence_score,
        )
        with self._lock:
            self._conn.upsert("approvals", "approval_id", _APPROVAL_COLUMNS, values)
            self._conn.commit()
        return approval

    def get_approval(self, approval_id: str) -> Approval | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM approvals WHERE approval_id = ?", (approval_id,)
            ).fetchone()
        return self._row_to_approval(row) if row else None

    def resolve_approval(
        self,
        approval_id: str,
        status: ApprovalStatus,
        resolved_at: datetime | None = None,
    ) -> bool:
        """Move a pending approval to ``status``.

        Returns False when the approval does not exist or is no longer
        pending; the row is left untouched in that case.
        """
        if status == ApprovalStatus.PENDING:
            raise ValueError("Cannot resolve an approval back to pending")

        resolved_at = resolved_at or datetime.now(UTC)
        with self._lock:
            self._conn.execute(
                "UPDATE approvals SET status = ?, resolved_at = ? "
                "WHERE approval_id = ? AND status = ?",
                (status.value, resolved_at.isoformat(), approval_id, ApprovalStatus.PENDING.value),
            )
            changed = self._conn.rowcount
            self._conn.commit()
        return changed == 1

    def assign_approval(self, approval_id: str, assignee: str) -> bool:
        with self._lock:
            self._conn.execute(
                "UPDATE approvals SET assignee = ? WHERE approval_id = ?",
                (assignee, approval_id),
            )
            changed = self._conn.rowcount
            self._conn.commit()
        return changed == 1

    def list_pending_approvals(self) -> list[Approval]:
        """Oldest first."""
        return self._query_approvals(
            "WHERE status = ? ORDER BY created_at ASC", (ApprovalStatus.PENDING.value,)
        )

    def list_approvals_by_type(self, approval_type: ApprovalType) -> list[Approval]:
        return self._query_approvals(
            "WHERE type = ? ORDER BY created_at DESC", (approval_type.value,)
        )

    def list_approvals_by_assignee(self, assignee: str) -> list[Approval]:
        return self._query_approvals(
            "WHERE assignee = ? ORDER BY created_at DESC", (assignee,)
        )

    def list_approvals_by_risk_flag(self, flag: RiskFlag) -> list[Approval]:
        return self._query_approvals(
            "WHERE risk_flags LIKE ? ORDER BY created_at DESC", (f'%"{flag.value}"%',)
        )

    def list_old_pending_approvals(self, hours_old: float = 24, now: datetime | None = None) -> list[Approval]:
        cutoff = (now or datetime.now(UTC)) - timedelta(hours=hours_old)
        return self._query_approvals(
            "WHERE status = ? AND created_at < ? ORDER BY created_at ASC",
            (ApprovalStatus.PENDING.value, cutoff.isoformat()),
        )

    def count_approvals(self) -> dict[str, int]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT status, COUNT(*) AS n FROM approvals GROUP BY status"
            ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    def _query_approvals(self, where: str, params: tuple) -> list[Approval]:
        with self._lock:
            rows = self._conn.execute(f"SELECT * FROM approvals {where}", params).fetchall()
        return [self._row_to_approval(r) for r in rows]

    # ─── Lifecycle ───────────────────────────────────────────

    def ping(self) -> bool:
        with self._lock:
            row = self._conn.execute("SELECT 1 AS ok").fetchone()
        return bool(row and row["ok"] == 1)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ─── Row mapping ─────────────────────────────────────────

    @staticmethod
    def _row_to_booking(row: dict[str, Any]) -> Booking:
        return Booking(**{**row, "pets": bool(row["pets"])})

    @staticmethod
    def _row_to_communication(row: dict[str, Any]) -> Communication:
        return Communication(**{**row, "draft": bool(row["draft"])})

    @staticmethod
    def _row_to_approval(row: dict[str, Any]) -> Approval:
        return Approval(
            **{
                **row,
                "payload": json.loads(row["payload"] or "{}"),
                "risk_flags": json.loads(row["risk_flags"] or "[]"),
            }
        )
