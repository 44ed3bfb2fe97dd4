import pytest

from app.auth.permissions import Actor, ActorRole, Capability, PermissionChecker, require_capability
from app.core.exceptions import PermissionDeniedError


class TestActor:
    def test_role_is_normalised(self):
        actor = Actor(user_id=1, role="  MANAGER ")
        assert actor.role == ActorRole.MANAGER

    def test_unknown_role_is_rejected(self):
        with pytest.raises(ValueError):
            Actor(user_id=1, role="janitor")


@pytest.mark.parametrize("role", ["platform_admin", "owner", "admin", "manager"])
def test_management_roles_hold_every_capability(role):
    checker = PermissionChecker(Actor(user_id=1, role=role))
    for capability in Capability:
        assert checker.can(capability)


def test_staff_can_only_request_swaps():
    actor = Actor(user_id=2, role="staff", employee_id=5)
    assert actor.capabilities == frozenset({Capability.REQUEST_SWAPS})

    checker = PermissionChecker(actor)
    assert checker.cannot(Capability.APPROVE_SWAPS)
    assert checker.cannot(Capability.MANAGE_SCHEDULES)


def test_require_capability_raises_permission_denied():
    actor = Actor(user_id=2, role="staff")
    with pytest.raises(PermissionDeniedError) as exc:
        require_capability(actor, Capability.APPROVE_SWAPS)

    assert exc.value.status_code == 403
    assert exc.value.detail == "Role 'staff' cannot approve swaps"
    assert str(exc.value) == "PERMISSION_DENIED: Role 'staff' cannot approve swaps"


def test_require_with_custom_message():
    checker = PermissionChecker(Actor(user_id=2, role="staff"))
    with pytest.raises(PermissionDeniedError) as exc:
        checker.require(Capability.MANAGE_SHIFTS, "Managers only")
    assert exc.value.detail == "Managers only"
