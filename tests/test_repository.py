"""Tests for the SQLite-backed repository."""

from datetime import UTC, date, datetime, timedelta

import pytest

from concierge.core.models import (
    ApprovalStatus,
    Booking,
    CommDirection,
    Communication,
)
from concierge.storage.repository import Repository


def _later_booking() -> Booking:
    return Booking(
        booking_id="bk-2002",
        guest_name="Ann Taylor",
        guest_email="ann@example.com",
        property_id="prop-harbour-view",
        arrival_date=datetime(2027, 3, 1, 15, 0, tzinfo=UTC),
        departure_date=datetime(2027, 3, 5, 10, 0, tzinfo=UTC),
    )


class TestRecords:
    def test_property_round_trip(self, repository, harbour_view):
        assert repository.get_property("prop-harbour-view") == harbour_view

    def test_booking_round_trip(self, repository, ann_booking):
        assert repository.get_booking("bk-1001") == ann_booking

    def test_missing_records(self, repository):
        assert repository.get_property("nope") is None
        assert repository.get_booking("nope") is None
        assert repository.get_approval("nope") is None

    def test_ping(self, repository):
        assert repository.ping() is True

    def test_file_database_persists(self, tmp_path, harbour_view):
        path = str(tmp_path / "concierge.db")
        repo = Repository(path)
        repo.save_property(harbour_view)
        repo.close()

        reopened = Repository(path)
        try:
            assert reopened.get_property("prop-harbour-view").name == "Harbour View Cottage"
        finally:
            reopened.close()


# ─── Booking lookup ─────────────────────────────────────────


class TestBookingLookup:
    def test_email_is_case_insensitive(self, repository):
        contexts = repository.get_booking_context(email="  Ann@Example.COM ")
        assert [c.booking.booking_id for c in contexts] == ["bk-1001"]
        assert contexts[0].property.name == "Harbour View Cottage"

    def test_falls_back_to_name(self, repository):
        contexts = repository.get_booking_context(email="old@example.com", name="ann")
        assert [c.booking.booking_id for c in contexts] == ["bk-1001"]

    def test_falls_back_to_phone(self, repository):
        contexts = repository.get_booking_context(name="Zed", phone="+64215550101")
        assert [c.booking.booking_id for c in contexts] == ["bk-1001"]

    def test_no_match(self, repository):
        assert repository.get_booking_context(email="x@example.com") == []
        assert repository.get_booking_context() == []

    def test_newest_arrival_first(self, repository):
        repository.save_booking(_later_booking())
        contexts = repository.get_booking_context(email="ann@example.com")
        assert [c.booking.booking_id for c in contexts] == ["bk-2002", "bk-1001"]

    def test_arrival_date_filter(self, repository):
        repository.save_booking(_later_booking())
        contexts = repository.get_booking_context(
            email="ann@example.com", arrival_date=date(2026, 12, 20)
        )
        assert [c.booking.booking_id for c in contexts] == ["bk-1001"]

    def test_previous_comms_attached(self, repository):
        repository.save_communication(Communication(
            booking_id="bk-1001", direction=CommDirection.INBOUND, body="Hi there",
        ))
        contexts = repository.get_booking_context(email="ann@example.com")
        assert [c.body for c in contexts[0].previous_comms] == ["Hi there"]


# ─── Identity verification ──────────────────────────────────


class TestVerifyIdentity:
    def test_all_answers_match(self, repository):
        result = repository.verify_identity("bk-1001", {
            "guest_name": "ANN TAYLOR",
            "guest_email": "ann@example.com",
            "arrival_date": "2026-12-20",
            "property_name": "harbour view",
        })
        assert result.verified is True
        assert result.reason is None

    @pytest.mark.parametrize(
        "answers, reason",
        [
            ({"guest_name": "Bob"}, "Name does not match booking record"),
            ({"guest_email": "bob@example.com"}, "Email does not match booking record"),
            ({"arrival_date": "2026-12-21"}, "Arrival date does not match booking record"),
            ({"property_name": "Lakeside Lodge"}, "Property name does not match booking record"),
        ],
    )
    def test_mismatch_reasons(self, repository, answers, reason):
        result = repository.verify_identity("bk-1001", answers)
        assert result.verified is False
        assert result.reason == reason

    def test_unknown_booking(self, repository):
        result = repository.verify_identity("bk-missing", {"guest_name": "Ann Taylor"})
        assert result.reason == "Booking not found"

    def test_property_missing(self, repository):
        repository.save_booking(_later_booking().model_copy(update={
            "booking_id": "bk-3003", "property_id": "prop-gone",
        }))
        result = repository.verify_identity("bk-3003", {"property_name": "Anything"})
        assert result.reason == "Property information not available for verification"


# ─── Communications ─────────────────────────────────────────


class TestCommunications:
    def test_thread_oldest_first(self, repository):
        now = datetime.now(UTC)
        second = Communication(thread_id="t-1", body="second", created_at=now)
        first = Communication(
            thread_id="t-1", body="first", direction=CommDirection.INBOUND,
            created_at=now - timedelta(minutes=5),
        )
        repository.save_communication(second)
        repository.save_communication(first)
        repository.save_communication(Communication(thread_id="t-2", body="other"))

        thread = repository.communications_by_thread("t-1")
        assert [c.body for c in thread] == ["first", "second"]
        assert thread[0].direction == CommDirection.INBOUND

    def test_mark_approved(self, repository):
        comm = repository.save_communication(Communication(body="draft", draft=True))
        assert repository.mark_communication_approved(comm.comm_id, "maria") is True
        assert repository.get_communication(comm.comm_id).approved_by == "maria"

    def test_mark_approved_missing(self, repository):
        assert repository.mark_communication_approved("comm-missing", "maria") is False


class TestApprovalRows:
    def test_cannot_resolve_to_pending(self, repository):
        with pytest.raises(ValueError):
            repository.resolve_approval("apr-1", ApprovalStatus.PENDING)

    def test_resolve_missing_returns_false(self, repository):
        assert repository.resolve_approval("apr-missing", ApprovalStatus.APPROVED) is False
