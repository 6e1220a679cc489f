# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

This module contains pure functions mapping portal roles to permissions and
deriving the HAL affordance links an actor may follow on a resource.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from models.entities import BenefitRequest, BenefitService, FamilyMember, UserContext
from models.enums import LifecycleAction, MemberRole
from .lifecycle import available_actions


ROLE_PERMISSIONS: Dict[MemberRole, List[str]] = {
    MemberRole.MEMBER: [
        "request:submit",
        "request:read_own",
        "family:read_own",
        "family:create_own",
        "service:read",
    ],
    MemberRole.CONTROLLER: [
        "request:read",
        "request:accept",
        "request:reject",
        "family:read",
        "service:read",
    ],
    MemberRole.ADMINISTRATOR: [
        "request:read",
        "request:validate",
        "request:reject",
        "family:read",
        "family:create",
        "family:update",
        "family:delete",
        "service:read",
        "service:manage",
        "audit:read",
    ],
}


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_permissions: List[str] = None

    def __post_init__(self):
        if self.missing_permissions is None:
            self.missing_permissions = []


def permissions_for_role(role) -> List[str]:
    """Effective permissions of a portal role."""
    return list(ROLE_PERMISSIONS[MemberRole(role)])


def check_permission(user_context: UserContext, required_permission: str) -> AuthorizationResult:
    """
    Check if the actor's role grants a specific permission.

    Args:
        user_context: Authenticated actor
        required_permission: Permission string to check

    Returns:
        AuthorizationResult indicating if permission is granted
    """
    if required_permission in permissions_for_role(user_context.role):
        return AuthorizationResult(allowed=True)

    return AuthorizationResult(
        allowed=False,
        reason=f"Missing required permission: {required_permission}",
        missing_permissions=[required_permission]
    )


def request_affordances(
    request: BenefitRequest,
    user_context: UserContext,
    base_url: str
) -> Dict[str, Dict[str, str]]:
    """HAL links for a benefit request, one per legal lifecycle action."""
    links = {
        "self": {"href": f"{base_url}/api/requests/{request.id}"}
    }

    for action in available_actions(request, user_context):
        links[action.value] = {
            "href": f"{base_url}/api/requests/{request.id}/{action.value}",
            "method": "POST",
            "title": _ACTION_TITLES[action],
        }

    return links


_ACTION_TITLES = {
    LifecycleAction.ACCEPT: "Accepter la demande",
    LifecycleAction.REJECT: "Rejeter la demande",
    LifecycleAction.VALIDATE: "Valider la demande",
}


def family_member_affordances(
    record: FamilyMember,
    user_context: UserContext,
    base_url: str
) -> Dict[str, Dict[str, str]]:
    """HAL links for a family member record."""
    links = {
        "self": {"href": f"{base_url}/api/family-members/{record.id}"}
    }

    if check_permission(user_context, "family:update").allowed:
        links["edit"] = {"href": f"{base_url}/api/family-members/{record.id}", "method": "PUT"}

    if check_permission(user_context, "family:delete").allowed:
        links["delete"] = {"href": f"{base_url}/api/family-members/{record.id}", "method": "DELETE"}

    return links


def service_affordances(
    service: BenefitService,
    user_context: UserContext,
    base_url: str
) -> Dict[str, Dict[str, str]]:
    """HAL links for a service catalog entry."""
    links = {
        "self": {"href": f"{base_url}/api/services/{service.id}"}
    }

    if check_permission(user_context, "service:manage").allowed:
        links["edit"] = {"href": f"{base_url}/api/services/{service.id}", "method": "PUT"}
        links["toggle"] = {
            "href": f"{base_url}/api/services/{service.id}/toggle",
            "method": "POST",
            "title": "Désactiver" if service.is_active else "Activer",
        }

    if service.is_active and check_permission(user_context, "request:submit").allowed:
        links["request"] = {"href": f"{base_url}/api/requests", "method": "POST"}

    return links
