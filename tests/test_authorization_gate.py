import pytest

from app.core.errors import ForbiddenError
from app.directory.models import Actor
from app.security.policy import AuthorizationGate, TicketContext
from app.security.roles import Action, Role

TEAM = "team-1"
OTHER_TEAM = "team-2"


def _actor(role: Role, *, actor_id: str = "actor", parent_id: str | None = TEAM, is_active: bool = True) -> Actor:
    return Actor(
        id=actor_id,
        name=actor_id.title(),
        email=f"{actor_id}@example.com",
        role=role,
        parent_id=parent_id,
        is_active=is_active,
    )


@pytest.fixture
def gate() -> AuthorizationGate:
    return AuthorizationGate()


@pytest.mark.parametrize("role", [Role.ADMIN, Role.SUPER_ADMIN])
@pytest.mark.parametrize("action", [Action.APPROVE, Action.REJECT])
def test_admins_may_decide_any_ticket(gate, role, action):
    actor = _actor(role, parent_id="root")
    assert gate.can_transition(actor, action, TicketContext(team_id=OTHER_TEAM, created_by="someone"))


@pytest.mark.parametrize("role", [Role.USER, Role.TEAM_MANAGER])
@pytest.mark.parametrize("action", [Action.APPROVE, Action.REJECT])
def test_roles_below_admin_may_not_decide(gate, role, action):
    actor = _actor(role, actor_id="creator")
    context = TicketContext(team_id=TEAM, created_by="creator")
    assert not gate.can_transition(actor, action, context)
    with pytest.raises(ForbiddenError) as exc:
        gate.ensure(actor, action, context)
    assert "requires role admin" in str(exc.value)


def test_inactive_actor_is_denied_everything(gate):
    actor = _actor(Role.SUPER_ADMIN, is_active=False)
    for action in Action:
        assert not gate.can_transition(actor, action, TicketContext(team_id=TEAM))


def test_user_proposes_only_for_own_team(gate):
    user = _actor(Role.USER)
    assert gate.can_transition(user, Action.PROPOSE, TicketContext(team_id=TEAM))
    assert not gate.can_transition(user, Action.PROPOSE, TicketContext(team_id=OTHER_TEAM))


def test_user_reads_own_or_team_tickets(gate):
    user = _actor(Role.USER, actor_id="uma")
    assert gate.can_transition(user, Action.READ_TICKET, TicketContext(team_id=TEAM, created_by="tom"))
    assert gate.can_transition(user, Action.READ_TICKET, TicketContext(team_id=OTHER_TEAM, created_by="uma"))
    assert not gate.can_transition(user, Action.READ_TICKET, TicketContext(team_id=OTHER_TEAM, created_by="olga"))


def test_team_manager_is_scoped_to_managed_team(gate):
    manager = _actor(Role.TEAM_MANAGER)
    assert gate.can_transition(manager, Action.COMMENT, TicketContext(team_id=TEAM, created_by="x"))
    assert not gate.can_transition(manager, Action.COMMENT, TicketContext(team_id=OTHER_TEAM, created_by="x"))


@pytest.mark.parametrize("action", [Action.SUBMIT, Action.UPDATE_TICKET])
def test_submit_and_edit_are_limited_to_creator_below_admin(gate, action):
    creator = _actor(Role.USER, actor_id="uma")
    teammate = _actor(Role.USER, actor_id="tom")
    admin = _actor(Role.ADMIN, actor_id="ada", parent_id="root")
    context = TicketContext(team_id=TEAM, created_by="uma")

    assert gate.can_transition(creator, action, context)
    assert not gate.can_transition(teammate, action, context)
    assert not gate.can_transition(_actor(Role.TEAM_MANAGER, actor_id="mia"), action, context)
    assert gate.can_transition(admin, action, context)


def test_scope_denial_has_distinct_message(gate):
    user = _actor(Role.USER)
    with pytest.raises(ForbiddenError) as exc:
        gate.ensure(user, Action.PROPOSE, TicketContext(team_id=OTHER_TEAM))
    assert "scope" in str(exc.value)


def test_internal_comments_visible_to_admins_only(gate):
    assert gate.can_see_internal(_actor(Role.ADMIN, parent_id="root"))
    assert gate.can_see_internal(_actor(Role.SUPER_ADMIN, parent_id=None))
    assert not gate.can_see_internal(_actor(Role.TEAM_MANAGER))
    assert not gate.can_see_internal(_actor(Role.USER))


def test_team_manager_may_create_projects(gate):
    assert gate.can_transition(_actor(Role.TEAM_MANAGER), Action.CREATE_PROJECT)
    assert not gate.can_transition(_actor(Role.USER), Action.CREATE_PROJECT)


def test_any_commenter_may_comment_but_only_admins_read_internal(gate):
    context = TicketContext(team_id=TEAM, created_by="uma")
    for role in (Role.USER, Role.TEAM_MANAGER):
        actor = _actor(role)
        assert gate.can_transition(actor, Action.COMMENT, context)
        assert not gate.can_transition(actor, Action.READ_INTERNAL, context)


def test_directory_management_requires_admin(gate):
    assert gate.can_transition(_actor(Role.ADMIN, parent_id="root"), Action.MANAGE_DIRECTORY)
    assert not gate.can_transition(_actor(Role.TEAM_MANAGER), Action.MANAGE_DIRECTORY)
    with pytest.raises(ForbiddenError):
        gate.ensure(_actor(Role.USER), Action.MANAGE_DIRECTORY)
