import pytest
from stratix.core.roles import RoleType, can_assign_role, has_role_at_least


@pytest.mark.parametrize("admin_role,target_role,expected", [
    (RoleType.corporativo, RoleType.corporativo, True),
    (RoleType.corporativo, RoleType.gerente, True),
    (RoleType.corporativo, RoleType.empleado, True),
    (RoleType.gerente, RoleType.empleado, True),
    (RoleType.gerente, RoleType.gerente, False),
    (RoleType.gerente, RoleType.corporativo, False),
    (RoleType.empleado, RoleType.empleado, False),
])
def test_can_assign_role(admin_role, target_role, expected):
    assert can_assign_role(admin_role, target_role) is expected


def test_can_assign_role_accepts_strings():
    assert can_assign_role("gerente", "empleado") is True


def test_unknown_role_cannot_assign():
    assert can_assign_role("superuser", "empleado") is False
    assert can_assign_role("corporativo", "superuser") is False


def test_has_role_at_least():
    assert has_role_at_least(RoleType.corporativo, RoleType.gerente)
    assert has_role_at_least("gerente", "gerente")
    assert not has_role_at_least(RoleType.empleado, RoleType.gerente)
    assert not has_role_at_least("guest", RoleType.empleado)
