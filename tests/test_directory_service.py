import pytest

from app.core.errors import AuthenticationError, ForbiddenError, NotFoundError, ValidationError
from app.security.roles import Role


@pytest.mark.asyncio
async def test_registration_binds_each_role_to_its_parent(org):
    assert org.super_admin.parent_id is None
    assert org.admin.parent_id == org.super_admin.id
    assert org.manager.role is Role.TEAM_MANAGER
    assert org.manager.team_id == org.team.id
    assert org.team.manager_id == org.manager.id
    assert org.user.team_id == org.team.id
    assert org.admin.team_id is None


@pytest.mark.asyncio
async def test_admin_requires_existing_super_admin(services, org):
    with pytest.raises(NotFoundError):
        await services.directory.register_admin(name="Eve", email="eve@example.com", super_admin_id="missing")
    with pytest.raises(NotFoundError):
        await services.directory.register_admin(name="Eve", email="eve@example.com", super_admin_id=org.admin.id)


@pytest.mark.asyncio
async def test_user_requires_existing_team(services):
    with pytest.raises(NotFoundError):
        await services.directory.register_user(name="Nobody", email="nobody@example.com", team_id="missing")


@pytest.mark.asyncio
async def test_duplicate_email_and_team_name_are_rejected(services, org):
    with pytest.raises(ValidationError):
        await services.directory.register_user(name="Uma Again", email="UMA@example.com", team_id=org.team.id)
    with pytest.raises(ValidationError):
        await services.directory.register_team(team_name="Platform", manager_name="Someone", email="new@example.com")


@pytest.mark.asyncio
async def test_invalid_email_is_rejected(services):
    with pytest.raises(ValidationError):
        await services.directory.register_super_admin(name="Root Two", email="not-an-email")


@pytest.mark.asyncio
async def test_authenticate_resolves_issued_tokens(services, org):
    actor = await services.directory.authenticate(org.tokens["admin"])
    assert actor.id == org.admin.id
    assert actor.role is Role.ADMIN


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, "", "not-a-real-token"])
async def test_authenticate_rejects_missing_or_unknown_tokens(services, org, token):
    with pytest.raises(AuthenticationError):
        await services.directory.authenticate(token)


@pytest.mark.asyncio
async def test_list_actors_requires_admin(services, org):
    with pytest.raises(ForbiddenError):
        await services.directory.list_actors(org.manager)

    admins = await services.directory.list_actors(org.admin, role=Role.ADMIN)
    assert [actor.id for actor in admins] == [org.admin.id]
    everyone = await services.directory.list_actors(org.super_admin)
    assert len(everyone) == 7


@pytest.mark.asyncio
async def test_project_codes_are_unique_and_normalised(services, org):
    project = await services.directory.create_project(org.other_manager, name="Invoices", code="inv-2")
    assert project.code == "INV-2"

    with pytest.raises(ValidationError):
        await services.directory.create_project(org.other_manager, name="Portal again", code="portal")
    with pytest.raises(ValidationError):
        await services.directory.create_project(org.other_manager, name="Bad", code="a b")


@pytest.mark.asyncio
async def test_users_cannot_create_projects(services, org):
    with pytest.raises(ForbiddenError):
        await services.directory.create_project(org.user, name="Sneaky", code="SNEAK")


@pytest.mark.asyncio
async def test_teams_and_projects_are_listed(services, org):
    teams = await services.directory.list_teams()
    assert [team.name for team in teams] == ["Billing", "Platform"]
    projects = await services.directory.list_projects()
    assert [project.code for project in projects] == ["PORTAL"]


@pytest.mark.asyncio
async def test_deactivated_actor_can_no_longer_authenticate(services, org):
    deactivated = await services.directory.set_actor_active(org.admin, org.user.id, False)
    assert deactivated.is_active is False

    with pytest.raises(AuthenticationError):
        await services.directory.authenticate(org.tokens["user"])
    active_users = await services.directory_repository.list_actors(roles=[Role.USER], active_only=True)
    assert org.user.id not in {actor.id for actor in active_users}

    reactivated = await services.directory.set_actor_active(org.super_admin, org.user.id, True)
    assert reactivated.is_active is True
    assert (await services.directory.authenticate(org.tokens["user"])).id == org.user.id


@pytest.mark.asyncio
async def test_actor_status_changes_are_limited(services, org):
    with pytest.raises(ForbiddenError):
        await services.directory.set_actor_active(org.manager, org.user.id, False)
    with pytest.raises(ForbiddenError):
        await services.directory.set_actor_active(org.admin, org.super_admin.id, False)
    with pytest.raises(ValidationError):
        await services.directory.set_actor_active(org.admin, org.admin.id, False)
    with pytest.raises(NotFoundError):
        await services.directory.set_actor_active(org.admin, "missing", False)

    assert (await services.directory.get_actor(org.user.id)).is_active is True


@pytest.mark.asyncio
async def test_deactivated_team_refuses_new_members(services, org):
    with pytest.raises(ForbiddenError):
        await services.directory.set_team_active(org.manager, org.team.id, False)

    team = await services.directory.set_team_active(org.admin, org.team.id, False)
    assert team.is_active is False
    with pytest.raises(ValidationError):
        await services.directory.register_user(name="Late Joiner", email="late@example.com", team_id=org.team.id)

    await services.directory.set_team_active(org.admin, org.team.id, True)
    registration = await services.directory.register_user(
        name="Late Joiner", email="late@example.com", team_id=org.team.id
    )
    assert registration.actor.team_id == org.team.id

    with pytest.raises(NotFoundError):
        await services.directory.set_team_active(org.admin, "missing", True)
