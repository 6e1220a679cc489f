# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for JWT issuing and validation.
"""

import jwt
import pytest
from datetime import datetime, timedelta, timezone

from domain.authorization import check_permission, permissions_for_role
from models.enums import MemberRole
from services.auth import AuthService, TokenValidationError

SECRET = "unit-test-secret-key-with-enough-bytes"


@pytest.fixture
def auth_service():
    return AuthService(secret=SECRET, algorithm="HS256")


def encode(payload):
    return jwt.encode(payload, SECRET, algorithm="HS256")


class TestAuthService:
    """Test token round trips and rejections."""

    def test_generate_and_validate(self, auth_service):
        token = auth_service.generate_access_token("u1", "Kossi Adjovi", MemberRole.CONTROLLER, "k@example.bj")

        payload = auth_service.validate_token(token)

        assert payload["sub"] == "u1"
        assert payload["name"] == "Kossi Adjovi"
        assert payload["role"] == "controller"
        assert payload["type"] == "access"

    def test_legacy_role_code(self, auth_service):
        token = auth_service.generate_access_token("u1", "Kossi Adjovi", "administrateur")

        assert auth_service.validate_token(token)["role"] == "administrator"

    def test_expired_token(self, auth_service):
        now = datetime.now(timezone.utc)
        token = encode({"sub": "u1", "name": "Kossi", "role": "member",
                        "iat": now - timedelta(hours=2), "exp": now - timedelta(hours=1)})

        with pytest.raises(TokenValidationError, match="expired"):
            auth_service.validate_token(token)

    def test_missing_claims(self, auth_service):
        token = encode({"sub": "u1", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)})

        with pytest.raises(TokenValidationError, match="missing claims"):
            auth_service.validate_token(token)

    def test_unknown_role(self, auth_service):
        token = encode({"sub": "u1", "name": "Kossi", "role": "superuser",
                        "exp": datetime.now(timezone.utc) + timedelta(minutes=5)})

        with pytest.raises(TokenValidationError, match="Unknown role"):
            auth_service.validate_token(token)

    def test_wrong_signature(self, auth_service):
        token = AuthService(secret="some-other-secret-key-with-enough-bytes").generate_access_token(
            "u1", "Kossi", MemberRole.MEMBER
        )

        with pytest.raises(TokenValidationError, match="Invalid token"):
            auth_service.validate_token(token)


class TestPermissions:
    """Test role permission checks."""

    def test_member_permissions(self, member):
        assert check_permission(member, "request:submit").allowed
        assert not check_permission(member, "audit:read").allowed

    def test_denied_result_names_permission(self, controller):
        result = check_permission(controller, "service:manage")

        assert not result.allowed
        assert result.missing_permissions == ["service:manage"]
        assert "service:manage" in result.reason

    def test_only_administrators_read_audit(self):
        readers = [role for role in MemberRole if "audit:read" in permissions_for_role(role)]

        assert readers == [MemberRole.ADMINISTRATOR]
