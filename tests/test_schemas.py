"""Tests for response schema serialization."""
from datetime import UTC, datetime, timedelta, timezone
from uuid import uuid4

from mapveto.schemas.audit import AuditLogResponse
from mapveto.schemas.session import SessionResponse, SessionResultsResponse


def _session(**overrides):
    naive = datetime(2026, 1, 1, 12, 0, 0)
    fields = dict(
        session_id=uuid4(),
        match_name="Grand Final",
        format="ABBA",
        status="COMPLETE",
        turn_timer_seconds=30,
        map_pool_size=3,
        player_count=2,
        current_turn=2,
        current_round=1,
        timer_started_at=None,
        timer_paused_at=None,
        winner_map_id=None,
        created_by=uuid4(),
        created_at=naive,
        updated_at=naive,
        started_at=naive,
        completed_at=naive,
        expires_at=naive,
    )
    fields.update(overrides)
    return SessionResponse(**fields)


def test_naive_datetimes_get_utc_suffix_in_json_mode():
    data = _session().model_dump(mode="json")

    assert data["completed_at"] == "2026-01-01T12:00:00Z"
    assert data["timer_started_at"] is None


def test_nested_datetimes_get_utc_suffix():
    results = SessionResultsResponse(status="valid", session=_session())

    assert results.model_dump(mode="json")["session"]["completed_at"] == "2026-01-01T12:00:00Z"
    assert '"expires_at":"2026-01-01T12:00:00Z"' in results.model_dump_json()


def test_aware_datetimes_converted_to_utc():
    plus_two = datetime(2026, 1, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
    log = AuditLogResponse(
        log_id=uuid4(),
        session_id=uuid4(),
        action="SESSION_CREATED",
        actor_type="ADMIN",
        actor_id=None,
        details={},
        timestamp=plus_two,
    )

    assert log.model_dump()["timestamp"] == "2026-01-01T12:00:00Z"
    assert datetime.fromisoformat(log.model_dump()["timestamp"]) == plus_two.astimezone(UTC)
