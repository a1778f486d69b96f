"""Tests for the session engine."""
import re
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from mapveto.config import get_settings
from mapveto.models import AuditLog, SessionMap, SessionPlayer, VetoSession
from mapveto.models.base import MapState, SessionStatus
from mapveto.services import SessionService, validate_token
from mapveto.utils.datetime_helpers import ensure_utc
from mapveto.utils.exceptions import (
    CapacityError,
    CollisionError,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

TOKEN_RE = re.compile(r"^[0-9a-f]{32}$")


async def _audit_actions(db_session, session_id):
    result = await db_session.execute(
        select(AuditLog.action)
        .where(AuditLog.session_id == session_id)
        .order_by(AuditLog.timestamp)
    )
    return list(result.scalars().all())


async def _session_maps(db_session, session_id):
    result = await db_session.execute(
        select(SessionMap)
        .where(SessionMap.session_id == session_id)
        .order_by(SessionMap.position)
    )
    return list(result.scalars().all())


class TestConcreteScenario:
    """End-to-end configuration of a two player, three map session."""

    @pytest.mark.asyncio
    async def test_two_players_three_maps(self, db_session, session_factory, team_factory, map_factory):
        service = SessionService(db_session)
        session = await session_factory(player_count=2, map_pool_size=3)
        assert session.status == SessionStatus.DRAFT.value

        team_a = await team_factory()
        team_b = await team_factory()
        p1 = await service.assign_player(session.session_id, "P1", team_a.name)
        p2 = await service.assign_player(session.session_id, "P2", team_b.name)

        now = datetime.now(UTC)
        for player in (p1, p2):
            assert TOKEN_RE.match(player.token)
            expires_in = ensure_utc(player.token_expires_at) - now
            assert timedelta(hours=23, minutes=59) < expires_in <= timedelta(hours=24)
        assert p1.token != p2.token

        master_maps = [await map_factory() for _ in range(3)]
        await service.set_session_maps(session.session_id, [m.map_id for m in master_maps])

        snapshots = await _session_maps(db_session, session.session_id)
        assert len(snapshots) == 3
        assert all(m.state == MapState.AVAILABLE.value for m in snapshots)

        session_id = session.session_id
        two_map_ids = [m.map_id for m in master_maps[:2]]
        third_team = await team_factory()
        with pytest.raises(CapacityError):
            await service.assign_player(session_id, "P3", third_team.name)

        with pytest.raises(ValidationError) as exc_info:
            await service.set_session_maps(session_id, two_map_ids)
        assert "Expected 3 maps, received 2" in str(exc_info.value)


class TestCreateSession:
    """Test session creation and validation."""

    @pytest.mark.asyncio
    async def test_create_session_defaults(self, db_session, admin_factory):
        admin = await admin_factory()
        service = SessionService(db_session)

        session = await service.create_session(
            match_name="  Grand Final  ",
            format="ABBA",
            player_count=2,
            created_by=admin.admin_id,
        )

        assert session.match_name == "Grand Final"
        assert session.status == SessionStatus.DRAFT.value
        assert session.turn_timer_seconds == 30
        assert session.map_pool_size == 5
        assert session.current_turn == 0
        assert session.current_round == 1
        assert session.winner_map_id is None
        lifetime = ensure_utc(session.expires_at) - ensure_utc(session.created_at)
        assert lifetime == timedelta(days=14)

        assert await _audit_actions(db_session, session.session_id) == ["SESSION_CREATED"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,kwargs", [
        ("match_name", {"match_name": "   "}),
        ("match_name", {"match_name": "x" * 101}),
        ("player_count", {"player_count": 1}),
        ("player_count", {"player_count": 9}),
        ("turn_timer_seconds", {"turn_timer_seconds": 9}),
        ("turn_timer_seconds", {"turn_timer_seconds": 301}),
        ("map_pool_size", {"map_pool_size": 2}),
        ("map_pool_size", {"map_pool_size": 16}),
        ("format", {"format": "BO3"}),
    ])
    async def test_create_session_rejects_invalid_input(self, db_session, admin_factory, field, kwargs):
        admin = await admin_factory()
        params = {
            "match_name": "Semi Final",
            "format": "MULTIPLAYER",
            "player_count": 4,
            "created_by": admin.admin_id,
        }
        params.update(kwargs)

        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).create_session(**params)
        assert exc_info.value.field == field

    @pytest.mark.asyncio
    async def test_create_session_accepts_range_bounds(self, db_session, admin_factory):
        admin = await admin_factory()
        session = await SessionService(db_session).create_session(
            match_name="x" * 100,
            format="MULTIPLAYER",
            player_count=8,
            turn_timer_seconds=300,
            map_pool_size=15,
            created_by=admin.admin_id,
        )
        assert session.turn_timer_seconds == 300
        assert session.map_pool_size == 15

    @pytest.mark.asyncio
    async def test_create_session_unknown_admin(self, db_session):
        with pytest.raises(NotFoundError):
            await SessionService(db_session).create_session(
                match_name="Orphan",
                format="ABBA",
                player_count=2,
                created_by=uuid4(),
            )


class TestUpdateSession:
    """Test updating session configuration."""

    @pytest.mark.asyncio
    async def test_update_records_changed_fields(self, db_session, session_factory):
        session = await session_factory()

        updated = await SessionService(db_session).update_session(
            session.session_id,
            match_name="Renamed",
            turn_timer_seconds=45,
        )

        assert updated.match_name == "Renamed"
        assert updated.turn_timer_seconds == 45
        log = (await db_session.execute(
            select(AuditLog).where(
                AuditLog.session_id == session.session_id,
                AuditLog.action == "SESSION_UPDATED",
            )
        )).scalar_one()
        assert log.details["changed_fields"] == ["match_name", "turn_timer_seconds"]

    @pytest.mark.asyncio
    async def test_update_rejected_once_started(self, db_session, veto_factory):
        veto = await veto_factory()

        with pytest.raises(InvalidStateError) as exc_info:
            await SessionService(db_session).update_session(veto.session.session_id, match_name="Late")
        assert exc_info.value.current_status == "IN_PROGRESS"

    @pytest.mark.asyncio
    async def test_update_validates_timer(self, db_session, session_factory):
        session = await session_factory()
        with pytest.raises(ValidationError):
            await SessionService(db_session).update_session(session.session_id, turn_timer_seconds=5)

    @pytest.mark.asyncio
    async def test_update_unknown_session(self, db_session):
        with pytest.raises(NotFoundError):
            await SessionService(db_session).update_session(uuid4(), match_name="Ghost")


class TestAssignPlayer:
    """Test seat assignment and token issuance."""

    @pytest.mark.asyncio
    async def test_assign_freezes_team_name_and_seat(self, db_session, session_factory, team_factory):
        session = await session_factory(player_count=3)
        service = SessionService(db_session)
        teams = [await team_factory() for _ in range(3)]

        players = [
            await service.assign_player(session.session_id, f"Seat {i}", f"  {team.name}  ")
            for i, team in enumerate(teams)
        ]

        assert [p.seat_number for p in players] == [0, 1, 2]
        assert [p.team_name for p in players] == [t.name for t in teams]
        assert all(not p.is_connected and not p.has_voted_this_round for p in players)

        teams[0].name = f"Renamed {uuid4().hex[:6]}"
        await db_session.commit()
        await db_session.refresh(players[0])
        assert players[0].team_name != teams[0].name

        log = (await db_session.execute(
            select(AuditLog).where(
                AuditLog.session_id == session.session_id,
                AuditLog.action == "PLAYER_ASSIGNED",
            ).order_by(AuditLog.timestamp)
        )).scalars().first()
        assert log.details["team_name"] == players[0].team_name

    @pytest.mark.asyncio
    async def test_duplicate_role_rejected(self, db_session, session_factory, team_factory):
        session = await session_factory(player_count=3)
        service = SessionService(db_session)
        await service.assign_player(session.session_id, "Captain", (await team_factory()).name)

        with pytest.raises(DuplicateError):
            await service.assign_player(session.session_id, " Captain ", (await team_factory()).name)

    @pytest.mark.asyncio
    async def test_role_match_is_case_sensitive(self, db_session, session_factory, team_factory):
        session = await session_factory(player_count=2)
        service = SessionService(db_session)
        await service.assign_player(session.session_id, "captain", (await team_factory()).name)
        player = await service.assign_player(session.session_id, "Captain", (await team_factory()).name)
        assert player.role == "Captain"

    @pytest.mark.asyncio
    async def test_capacity_checked_before_role(self, db_session, session_factory, team_factory):
        session = await session_factory(player_count=2)
        session_id = session.session_id
        service = SessionService(db_session)
        for role in ("P1", "P2"):
            await service.assign_player(session.session_id, role, (await team_factory()).name)

        # Even an invalid role fails on capacity, and nothing is inserted
        with pytest.raises(CapacityError):
            await service.assign_player(session.session_id, "", (await team_factory()).name)

        count = len((await db_session.execute(
            select(SessionPlayer).where(SessionPlayer.session_id == session_id)
        )).scalars().all())
        assert count == 2

    @pytest.mark.asyncio
    async def test_unknown_team(self, db_session, session_factory):
        session = await session_factory()
        with pytest.raises(NotFoundError) as exc_info:
            await SessionService(db_session).assign_player(session.session_id, "P1", "No Such Team")
        assert "No Such Team" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_role(self, db_session, session_factory, team_factory):
        session = await session_factory()
        team = await team_factory()
        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).assign_player(session.session_id, "r" * 101, team.name)
        assert exc_info.value.field == "role"

    @pytest.mark.asyncio
    async def test_token_collision_retries_once(self, db_session, session_factory, team_factory, monkeypatch):
        session = await session_factory(player_count=3)
        service = SessionService(db_session)
        first = await service.assign_player(session.session_id, "P1", (await team_factory()).name)

        fresh_token = uuid4().hex
        tokens = iter([first.token, fresh_token])
        monkeypatch.setattr(
            "mapveto.services.session_service.generate_player_token",
            lambda: next(tokens),
        )

        second = await service.assign_player(session.session_id, "P2", (await team_factory()).name)
        assert second.token == fresh_token

    @pytest.mark.asyncio
    async def test_token_collision_exhausted(self, db_session, session_factory, team_factory, monkeypatch):
        session = await session_factory(player_count=3)
        service = SessionService(db_session)
        first = await service.assign_player(session.session_id, "P1", (await team_factory()).name)

        monkeypatch.setattr(
            "mapveto.services.session_service.generate_player_token",
            lambda: first.token,
        )

        with pytest.raises(CollisionError):
            await service.assign_player(session.session_id, "P2", (await team_factory()).name)


class TestSetSessionMaps:
    """Test map pool snapshots."""

    @pytest.mark.asyncio
    async def test_idempotent_replace(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        service = SessionService(db_session)
        first_pool = [await map_factory() for _ in range(3)]
        second_pool = [await map_factory() for _ in range(3)]

        await service.set_session_maps(session.session_id, [m.map_id for m in first_pool])
        await service.set_session_maps(session.session_id, [m.map_id for m in reversed(second_pool)])

        snapshots = await _session_maps(db_session, session.session_id)
        assert [s.map_id for s in snapshots] == [m.map_id for m in reversed(second_pool)]
        assert [s.position for s in snapshots] == [0, 1, 2]

        actions = await _audit_actions(db_session, session.session_id)
        assert actions.count("MAPS_ASSIGNED") == 2

    @pytest.mark.asyncio
    async def test_snapshot_isolation(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        master_maps = [await map_factory() for _ in range(3)]
        await SessionService(db_session).set_session_maps(
            session.session_id, [m.map_id for m in master_maps]
        )
        before = [(s.name, s.image_url) for s in await _session_maps(db_session, session.session_id)]

        for game_map in master_maps:
            game_map.name = f"Changed {uuid4().hex[:6]}"
            game_map.image_url = "https://img.example.com/changed.png"
            game_map.is_active = False
        await db_session.commit()

        rows = (await db_session.execute(
            select(SessionMap)
            .where(SessionMap.session_id == session.session_id)
            .order_by(SessionMap.position)
            .execution_options(populate_existing=True)
        )).scalars().all()
        assert [(s.name, s.image_url) for s in rows] == before

    @pytest.mark.asyncio
    async def test_string_map_ids_accepted(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        master_maps = [await map_factory() for _ in range(3)]

        snapshots = await SessionService(db_session).set_session_maps(
            session.session_id, [str(m.map_id).upper() for m in master_maps]
        )

        assert [s.map_id for s in snapshots] == [m.map_id for m in master_maps]

    @pytest.mark.asyncio
    async def test_string_duplicates_rejected(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        a, b = await map_factory(), await map_factory()
        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).set_session_maps(
                session.session_id, [a.map_id, str(b.map_id), str(a.map_id)]
            )
        assert "Duplicate" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_malformed_map_id(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        pool = [(await map_factory()).map_id, (await map_factory()).map_id, "not-a-uuid"]
        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).set_session_maps(session.session_id, pool)
        assert exc_info.value.field == "map_ids"

    @pytest.mark.asyncio
    async def test_snapshot_survives_master_map_deletion(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        master_maps = [await map_factory() for _ in range(3)]
        session_id = session.session_id
        await SessionService(db_session).set_session_maps(session_id, [m.map_id for m in master_maps])
        retired_id = master_maps[0].map_id
        retired_name = master_maps[0].name

        await db_session.delete(master_maps[0])
        await db_session.commit()

        assert not SessionMap.__table__.c.map_id.foreign_keys
        details = await SessionService(db_session).get_session(session_id)
        assert details.maps[0].map_id == retired_id
        assert details.maps[0].name == retired_name

    @pytest.mark.asyncio
    async def test_duplicates_rejected(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        a, b = await map_factory(), await map_factory()
        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).set_session_maps(session.session_id, [a.map_id, b.map_id, a.map_id])
        assert "Duplicate" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_inactive_map_named(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        inactive = await map_factory(name=f"Retired {uuid4().hex[:6]}", is_active=False)
        inactive_name = inactive.name
        session_id = session.session_id
        pool = [await map_factory(), await map_factory(), inactive]

        with pytest.raises(ValidationError) as exc_info:
            await SessionService(db_session).set_session_maps(session.session_id, [m.map_id for m in pool])
        assert inactive_name in str(exc_info.value)
        assert await _session_maps(db_session, session_id) == []

    @pytest.mark.asyncio
    async def test_unknown_map(self, db_session, session_factory, map_factory):
        session = await session_factory(map_pool_size=3)
        pool = [(await map_factory()).map_id, (await map_factory()).map_id, uuid4()]
        with pytest.raises(NotFoundError):
            await SessionService(db_session).set_session_maps(session.session_id, pool)

    @pytest.mark.asyncio
    async def test_storage_image_takes_precedence(self, db_session, session_factory, map_factory, monkeypatch):
        monkeypatch.setattr(get_settings(), "storage_base_url", "https://cdn.example.com/")
        session = await session_factory(map_pool_size=3)
        stored = await map_factory(image_storage_id="maps/inferno.png")
        plain = await map_factory(image_url="https://img.example.com/plain.png")
        unresolved = await map_factory(image_url="")

        await SessionService(db_session).set_session_maps(
            session.session_id, [stored.map_id, plain.map_id, unresolved.map_id]
        )

        images = [s.image_url for s in await _session_maps(db_session, session.session_id)]
        assert images == [
            "https://cdn.example.com/maps/inferno.png",
            "https://img.example.com/plain.png",
            "",
        ]

    @pytest.mark.asyncio
    async def test_only_in_draft(self, db_session, veto_factory):
        veto = await veto_factory(start=False)
        service = SessionService(db_session)
        await service.finalize_session(veto.session.session_id)

        with pytest.raises(InvalidStateError):
            await service.set_session_maps(veto.session.session_id, [m.map_id for m in veto.master_maps])


class TestLifecycle:
    """Test lifecycle transitions."""

    @pytest.mark.asyncio
    async def test_finalize_requires_full_configuration(self, db_session, session_factory, team_factory):
        session = await session_factory(player_count=2)
        service = SessionService(db_session)
        await service.assign_player(session.session_id, "P1", (await team_factory()).name)

        with pytest.raises(ValidationError) as exc_info:
            await service.finalize_session(session.session_id)
        assert exc_info.value.field == "players"

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, db_session, veto_factory):
        veto = await veto_factory(start=False)
        service = SessionService(db_session)
        session_id = veto.session.session_id

        session = await service.finalize_session(session_id)
        assert session.status == SessionStatus.WAITING.value

        session = await service.start_session(session_id)
        assert session.status == SessionStatus.IN_PROGRESS.value
        assert session.started_at is not None
        assert session.timer_started_at is not None

        session = await service.pause_session(session_id)
        assert session.status == SessionStatus.PAUSED.value

        # Pretend the pause lasted two minutes
        timer_started_at = ensure_utc(session.timer_started_at)
        session.timer_paused_at = datetime.now(UTC) - timedelta(minutes=2)
        await db_session.commit()

        session = await service.resume_session(session_id)
        assert session.status == SessionStatus.IN_PROGRESS.value
        assert session.timer_paused_at is None
        shift = ensure_utc(session.timer_started_at) - timer_started_at
        assert timedelta(minutes=1, seconds=59) < shift < timedelta(minutes=2, seconds=5)

        actions = await _audit_actions(db_session, session_id)
        for action in ("SESSION_FINALIZED", "SESSION_STARTED", "SESSION_PAUSED", "SESSION_RESUMED"):
            assert action in actions

    @pytest.mark.asyncio
    async def test_start_requires_waiting(self, db_session, session_factory):
        session = await session_factory()
        with pytest.raises(InvalidStateError) as exc_info:
            await SessionService(db_session).start_session(session.session_id)
        assert exc_info.value.allowed_statuses == ["WAITING"]

    @pytest.mark.asyncio
    async def test_end_session_completes_without_winner(self, db_session, veto_factory):
        veto = await veto_factory()
        service = SessionService(db_session)
        await service.record_heartbeat(veto.players[0].token, ip_address="203.0.113.7")

        session = await service.end_session(veto.session.session_id, reason="Server crash")

        assert session.status == SessionStatus.COMPLETE.value
        assert session.winner_map_id is None
        assert session.completed_at is not None
        player = (await db_session.execute(
            select(SessionPlayer)
            .where(SessionPlayer.player_id == veto.players[0].player_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        assert player.ip_address is None

        log = (await db_session.execute(
            select(AuditLog).where(
                AuditLog.session_id == session.session_id,
                AuditLog.action == "SESSION_ENDED",
            )
        )).scalar_one()
        assert log.details["reason"] == "Server crash"


class TestDeleteSession:
    """Test the public delete path."""

    @pytest.mark.asyncio
    async def test_delete_preserves_audit_history(self, db_session, veto_factory):
        veto = await veto_factory(start=False)
        session_id = veto.session.session_id
        prior_actions = await _audit_actions(db_session, session_id)

        counts = await SessionService(db_session).delete_session(session_id)

        assert counts.as_dict() == {"votes": 0, "players": 2, "maps": 3, "audit_logs": 0, "session": 1}
        assert await db_session.get(VetoSession, session_id) is None
        actions = await _audit_actions(db_session, session_id)
        assert actions == prior_actions + ["SESSION_DELETED"]

    @pytest.mark.asyncio
    async def test_delete_only_in_draft(self, db_session, veto_factory):
        veto = await veto_factory()
        with pytest.raises(InvalidStateError):
            await SessionService(db_session).delete_session(veto.session.session_id)

    @pytest.mark.asyncio
    async def test_delete_unknown_session(self, db_session):
        with pytest.raises(NotFoundError):
            await SessionService(db_session).delete_session(uuid4())


class TestTokenAccess:
    """Test token resolution and connection tracking."""

    @pytest.mark.asyncio
    async def test_valid_token_view(self, db_session, veto_factory):
        veto = await veto_factory()
        view = await SessionService(db_session).get_session_by_token(veto.players[0].token)

        assert view.status == "valid"
        assert view.player.player_id == veto.players[0].player_id
        assert [p.player_id for p in view.other_players] == [veto.players[1].player_id]
        assert len(view.maps) == 3
        assert view.is_your_turn is True

        second_view = await SessionService(db_session).get_session_by_token(veto.players[1].token)
        assert second_view.is_your_turn is False

    @pytest.mark.asyncio
    async def test_unknown_token(self, db_session):
        view = await SessionService(db_session).get_session_by_token(uuid4().hex)
        assert view.status == "error"
        assert view.error == "INVALID_TOKEN"

    @pytest.mark.asyncio
    async def test_expired_token(self, db_session, veto_factory):
        veto = await veto_factory()
        player = veto.players[0]
        player.token_expires_at = datetime.now(UTC) - timedelta(minutes=1)
        await db_session.commit()

        view = await SessionService(db_session).get_session_by_token(player.token)
        assert view.error == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_token_for_missing_session(self, db_session):
        # SQLite does not enforce foreign keys, so a dangling seat can exist
        player = SessionPlayer(
            player_id=uuid4(),
            session_id=uuid4(),
            role="Ghost",
            team_name="Nobody",
            token=uuid4().hex,
            token_expires_at=datetime.now(UTC) + timedelta(hours=1),
        )
        db_session.add(player)
        await db_session.commit()

        view = await SessionService(db_session).get_session_by_token(player.token)
        assert view.error == "SESSION_NOT_FOUND"

    def test_validate_token_boundary(self):
        now = datetime.now(UTC)
        player = SessionPlayer(token_expires_at=now)
        assert validate_token(player, now) is True
        assert validate_token(player, now + timedelta(microseconds=1)) is False

    @pytest.mark.asyncio
    async def test_heartbeat_and_disconnect(self, db_session, veto_factory):
        veto = await veto_factory()
        service = SessionService(db_session)
        token = veto.players[0].token

        player = await service.record_heartbeat(token, ip_address="198.51.100.4")
        assert player.is_connected is True
        assert player.ip_address == "198.51.100.4"
        assert player.last_heartbeat is not None

        await service.record_heartbeat(token)
        player = await service.disconnect_player(token)
        assert player.is_connected is False

        actions = await _audit_actions(db_session, veto.session.session_id)
        assert actions.count("PLAYER_CONNECTED") == 1
        assert actions.count("PLAYER_DISCONNECTED") == 1


class TestReads:
    """Test session listing."""

    @pytest.mark.asyncio
    async def test_get_session_details(self, db_session, veto_factory):
        veto = await veto_factory()
        details = await SessionService(db_session).get_session(veto.session.session_id)

        assert details.session.session_id == veto.session.session_id
        assert [p.role for p in details.players] == ["P1", "P2"]
        assert [m.position for m in details.maps] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_get_missing_session(self, db_session):
        assert await SessionService(db_session).get_session(uuid4()) is None

    @pytest.mark.asyncio
    async def test_dashboard_hides_finished_sessions(self, db_session, veto_factory, session_factory):
        service = SessionService(db_session)
        finished = await veto_factory()
        await service.end_session(finished.session.session_id)
        draft = await session_factory()

        dashboard = await service.list_sessions_for_dashboard()
        ids = {entry["session_id"] for entry in dashboard}
        assert draft.session_id in ids
        assert finished.session.session_id not in ids

        completed = await service.list_sessions_for_dashboard(status=SessionStatus.COMPLETE)
        entry = next(e for e in completed if e["session_id"] == finished.session.session_id)
        assert entry["assigned_player_count"] == 2
        assert entry["teams"] == [p.team_name for p in finished.players]

    @pytest.mark.asyncio
    async def test_list_sessions_by_status(self, db_session, session_factory):
        session = await session_factory()
        drafts = await SessionService(db_session).list_sessions(status=SessionStatus.DRAFT)
        assert session.session_id in {s.session_id for s in drafts}
        assert all(s.status == "DRAFT" for s in drafts)
