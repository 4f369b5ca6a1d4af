"""Tests for principals and role checks."""

import pytest

from chess_arena.utils.errors import ErrorCode
from chess_arena.utils.security import ADMIN_ROLE, Principal, require_roles


class TestPrincipal:
    def test_header_values_are_trimmed(self):
        principal = Principal.from_header_values(" alice ", "admin, player,,")

        assert principal.id == "alice"
        assert principal.roles == frozenset({"admin", "player"})

    def test_missing_roles_header(self):
        principal = Principal.from_header_values("bob", None)

        assert principal.roles == frozenset()
        assert not principal.has_role(ADMIN_ROLE)


class TestRequireRoles:
    def test_anonymous_is_unauthorized(self):
        result = require_roles(None, [ADMIN_ROLE])

        assert not result.success
        assert result.error_code == ErrorCode.UNAUTHORIZED

    @pytest.mark.parametrize("roles", ["", "player", "moderator,player"])
    def test_missing_role_is_forbidden(self, roles):
        result = require_roles(Principal.from_header_values("bob", roles), [ADMIN_ROLE])

        assert result.error_code == ErrorCode.FORBIDDEN
        assert result.details == {"required": [ADMIN_ROLE]}

    def test_any_required_role_is_enough(self):
        principal = Principal.from_header_values("carol", "arbiter")

        assert require_roles(principal, ["admin", "arbiter"]).success

    def test_no_roles_required(self):
        assert require_roles(Principal("dave"), []).success
