import pytest
from datetime import datetime, timedelta, timezone
from codeclash.errors import (
    CannotStart, NotAMember, TeamLocked, ValidationError, InvalidContestState,
    AlreadyOnAnotherTeam, ContestEnded, NotTeamLeader,
)
from codeclash.models.contest import Contest
from codeclash.services.invites import join_by_code
from codeclash.services import lobby
from codeclash.services.lobby import (
    create_team, set_ready, start_team, complete_team, get_by_code,
    get_by_user_and_contest, display_status, leader_of, list_teams,
)
from codeclash.services.contest_window import ensure_utc
from codeclash.services.users import UserRef

U1 = UserRef(id="u1", display_name="Alice")
U2 = UserRef(id="u2", display_name="Bob")
U3 = UserRef(id="u3", display_name="Carol")


async def _team_of_two(session, contest_id):
    team = await create_team(session, contest_id, U1, "Falcons")
    code = team.code
    await join_by_code(session, code, U2)
    return code


@pytest.mark.asyncio
async def test_create_join_ready_start(session, make_contest):
    """Create, join, both ready, leader starts."""
    contest = await make_contest()
    team = await create_team(session, contest.id, U1, "Falcons")
    code = team.code
    assert team.status == "waiting"
    assert [(m.user_id, m.role, m.ready) for m in team.members] == [("u1", "leader", False)]

    result = await join_by_code(session, code, U2)
    assert result.joined is True
    assert [(m.user_id, m.ready) for m in result.team.members] == [("u1", False), ("u2", False)]

    await set_ready(session, code, "u1", True)
    update = await set_ready(session, code, "u2", True)
    assert update.changed is True
    team = update.team
    assert display_status(team) == "ready"
    assert team.status == "waiting"  # "ready" is derived, never stored
    assert team.ready_at is not None

    team = (await start_team(session, code, "u1")).team
    assert team.status == "started"
    assert team.started_at is not None


@pytest.mark.asyncio
async def test_start_rejected_while_member_not_ready(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await set_ready(session, code, "u1", True)

    with pytest.raises(CannotStart) as exc:
        await start_team(session, code, "u1")
    assert exc.value.reason == CannotStart.NOT_ALL_READY
    assert exc.value.extra["pending"] == ["Bob"]

    team = await get_by_code(session, code)
    assert team.status == "waiting"


@pytest.mark.asyncio
async def test_start_rejected_for_team_of_one(session, make_contest):
    contest = await make_contest()
    team = await create_team(session, contest.id, U1, "Solo")
    code = team.code
    await set_ready(session, code, "u1", True)

    with pytest.raises(CannotStart) as exc:
        await start_team(session, code, "u1")
    assert exc.value.reason == CannotStart.TOO_FEW_MEMBERS

    team = await get_by_code(session, code)
    assert team.status == "waiting"
    assert display_status(team) == "waiting"


@pytest.mark.asyncio
async def test_only_leader_can_start(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await set_ready(session, code, "u1", True)
    await set_ready(session, code, "u2", True)

    with pytest.raises(CannotStart) as exc:
        await start_team(session, code, "u2")
    assert exc.value.reason == CannotStart.NOT_LEADER
    assert (await get_by_code(session, code)).status == "waiting"

    # Not even a member
    with pytest.raises(CannotStart):
        await start_team(session, code, "stranger")


@pytest.mark.asyncio
async def test_start_is_idempotent(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await set_ready(session, code, "u1", True)
    await set_ready(session, code, "u2", True)

    first = await start_team(session, code, "u1")
    assert first.changed is True
    started_at = first.team.started_at
    again = await start_team(session, code, "u1")
    assert again.changed is False
    assert again.team.status == "started"
    assert ensure_utc(again.team.started_at) == ensure_utc(started_at)


@pytest.mark.asyncio
async def test_started_team_is_latched(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await set_ready(session, code, "u1", True)
    await set_ready(session, code, "u2", True)
    await start_team(session, code, "u1")

    with pytest.raises(TeamLocked):
        await set_ready(session, code, "u2", False)
    with pytest.raises(TeamLocked):
        await join_by_code(session, code, U3)

    team = await get_by_code(session, code)
    assert team.status == "started"
    assert [m.user_id for m in team.members] == ["u1", "u2"]
    assert all(m.ready for m in team.members)


@pytest.mark.asyncio
async def test_leader_never_changes(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await join_by_code(session, code, U3)
    for uid in ("u1", "u2", "u3"):
        await set_ready(session, code, uid, True)
    team = (await start_team(session, code, "u1")).team

    leaders = [m for m in team.members if m.role == "leader"]
    assert len(leaders) == 1
    assert leader_of(team).user_id == "u1" == team.created_by


@pytest.mark.asyncio
async def test_set_ready_rules(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)

    with pytest.raises(NotAMember):
        await set_ready(session, code, "nobody", True)

    await set_ready(session, code, "u1", True)
    update = await set_ready(session, code, "u1", True)
    assert update.changed is False
    assert [m.ready for m in update.team.members] == [True, False]

    await set_ready(session, code, "u2", True)
    team = (await set_ready(session, code, "u2", False)).team
    assert display_status(team) == "waiting"
    assert team.ready_at is None


@pytest.mark.asyncio
async def test_create_team_validation(session, make_contest):
    team_contest = await make_contest()
    individual = await make_contest(contest_type="individual")
    ended = await make_contest(starts_in=timedelta(hours=-3), ends_in=timedelta(hours=-1))

    with pytest.raises(ValidationError):
        await create_team(session, team_contest.id, U1, "   ")
    with pytest.raises(InvalidContestState):
        await create_team(session, individual.id, U1, "Falcons")
    with pytest.raises(ContestEnded):
        await create_team(session, ended.id, U1, "Falcons")

    await create_team(session, team_contest.id, U1, "Falcons")
    with pytest.raises(AlreadyOnAnotherTeam):
        await create_team(session, team_contest.id, U1, "Hawks")


@pytest.mark.asyncio
async def test_team_name_is_trimmed_and_code_unique(session, make_contest):
    contest = await make_contest()
    a = await create_team(session, contest.id, U1, "  Falcons ")
    b = await create_team(session, contest.id, U2, "Hawks")
    assert a.name == "Falcons"
    assert a.code != b.code


@pytest.mark.asyncio
async def test_lookup_by_user_and_contest(session, make_contest):
    contest = await make_contest()
    other = await make_contest(title="Other")
    code = await _team_of_two(session, contest.id)

    team = await get_by_user_and_contest(session, "u2", contest.id)
    assert team is not None and team.code == code
    assert await get_by_user_and_contest(session, "u2", other.id) is None
    assert await get_by_user_and_contest(session, "ghost", contest.id) is None


@pytest.mark.asyncio
async def test_complete_team(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)

    done = await complete_team(session, code)
    assert done.changed is True
    assert done.team.status == "completed" and done.team.completed_at is not None
    again = await complete_team(session, code)
    assert again.changed is False
    assert again.team.status == "completed"

    with pytest.raises(TeamLocked):
        await start_team(session, code, "u1")
    with pytest.raises(TeamLocked):
        await join_by_code(session, code, U3)


@pytest.mark.asyncio
async def test_start_after_contest_end(session, make_contest):
    contest = await make_contest()
    cid = contest.id
    code = await _team_of_two(session, cid)
    await set_ready(session, code, "u1", True)
    await set_ready(session, code, "u2", True)

    row = await session.get(Contest, cid)
    now = datetime.now(timezone.utc)
    row.starts_at = now - timedelta(hours=3)
    row.ends_at = now - timedelta(minutes=1)
    await session.commit()

    with pytest.raises(ContestEnded):
        await start_team(session, code, "u1")


@pytest.mark.asyncio
async def test_list_teams_filters(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)
    await create_team(session, contest.id, U3, "Hawks")
    await set_ready(session, code, "u1", True)
    await set_ready(session, code, "u2", True)

    assert {t.name for t in await list_teams(session, contest_id=contest.id)} == {"Falcons", "Hawks"}
    assert [t.name for t in await list_teams(session, status="ready")] == ["Falcons"]
    assert [t.name for t in await list_teams(session, search="carol")] == ["Hawks"]
    assert [t.name for t in await list_teams(session, search=code.lower())] == ["Falcons"]


@pytest.mark.asyncio
async def test_create_retries_after_code_collision(session, make_contest, monkeypatch):
    contest = await make_contest()
    taken = (await create_team(session, contest.id, U1, "Falcons")).code

    real_generate = lobby.generate_code
    issued = []

    def collide_once(length=None):
        issued.append(taken if not issued else real_generate(length))
        return issued[-1]

    monkeypatch.setattr(lobby, "generate_code", collide_once)
    team = await create_team(session, contest.id, U2, "Owls")
    assert len(issued) == 2
    assert team.code == issued[1] != taken
    assert [m.user_id for m in team.members] == ["u2"]


@pytest.mark.asyncio
async def test_create_gives_up_when_codes_keep_colliding(session, make_contest, monkeypatch):
    contest = await make_contest()
    taken = (await create_team(session, contest.id, U1, "Falcons")).code
    cid = contest.id

    monkeypatch.setattr(lobby, "generate_code", lambda length=None: taken)
    with pytest.raises(RuntimeError):
        await create_team(session, cid, U2, "Owls")
    assert await get_by_user_and_contest(session, "u2", cid) is None


@pytest.mark.asyncio
async def test_create_race_for_second_team_is_a_conflict(session, make_contest, monkeypatch):
    contest = await make_contest()
    cid = contest.id
    first = (await create_team(session, cid, U1, "Falcons")).code

    real_lookup = lobby.get_by_user_and_contest
    calls = []

    async def stale_first(session, user_id, contest_id):
        calls.append(user_id)
        if len(calls) == 1:
            return None
        return await real_lookup(session, user_id, contest_id)

    monkeypatch.setattr(lobby, "get_by_user_and_contest", stale_first)
    with pytest.raises(AlreadyOnAnotherTeam):
        await create_team(session, cid, U1, "Second")

    teams = await list_teams(session, contest_id=cid)
    assert [t.code for t in teams] == [first]


@pytest.mark.asyncio
async def test_complete_by_member_is_rejected(session, make_contest):
    contest = await make_contest()
    code = await _team_of_two(session, contest.id)

    with pytest.raises(NotTeamLeader):
        await complete_team(session, code, "u2")
    assert (await get_by_code(session, code)).status == "waiting"

    done = await complete_team(session, code, "u1")
    assert done.changed is True and done.team.status == "completed"
