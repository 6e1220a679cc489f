# SPDX-License-Identifier: Apache-2.0

"""
Family member endpoints.

Members register their own spouse, parents, step-parents and children;
administrators manage every member's family.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from middleware.auth import require_jwt
from middleware.error_handler import unwrap
from models.requests import FamilyMemberData, FamilyMemberPath, FamilyMemberUpdate, FamilyQuery

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

family_tag = Tag(name="Family members", description="Beneficiaries attached to a member")
family_bp = APIBlueprint(
    'family_members',
    __name__,
    url_prefix='/api/family-members',
    abp_tags=[family_tag]
)


@family_bp.get('')
@require_jwt
def list_family_members(query: FamilyQuery):
    """List a member's family with the remaining slots per relation class."""
    user_context = g.user_context
    service = current_app.family_member_service

    with tracer.start_as_current_span("family.list", attributes={"user.id": user_context.user_id}):
        records = unwrap(service.list(user_context, query.owner_id))
        slots = unwrap(service.slots(user_context, query.owner_id))
        return jsonify(current_app.hal_formatter.format_family_collection(records, user_context, slots))


@family_bp.get('/slots')
@require_jwt
def get_relation_slots(query: FamilyQuery):
    """Used and available slots per relation class."""
    user_context = g.user_context
    return jsonify(unwrap(current_app.family_member_service.slots(user_context, query.owner_id)))


@family_bp.post('')
@require_jwt
def add_family_member(body: FamilyMemberData):
    """Register a family member."""
    user_context = g.user_context

    with tracer.start_as_current_span(
        "family.add",
        attributes={"user.id": user_context.user_id, "family.relation": str(body.relation)}
    ):
        record = unwrap(current_app.family_member_service.add(body, user_context))

        logger.info(
            "Family member registered",
            extra={
                "family_member_id": record.id,
                "owner_id": record.owner_id,
                "relation": record.relation,
                "user_id": user_context.user_id
            }
        )

        response = current_app.hal_formatter.format_family_member(record, user_context)
        return jsonify(response), 201, {'Location': response['_links']['self']['href']}


@family_bp.put('/<member_id>')
@require_jwt
def edit_family_member(path: FamilyMemberPath, body: FamilyMemberUpdate):
    """Edit a family member (administrators)."""
    user_context = g.user_context

    with tracer.start_as_current_span("family.edit", attributes={"family.id": path.member_id}):
        record = unwrap(current_app.family_member_service.edit(path.member_id, body, user_context))
        return jsonify(current_app.hal_formatter.format_family_member(record, user_context))


@family_bp.delete('/<member_id>')
@require_jwt
def remove_family_member(path: FamilyMemberPath):
    """Remove a family member (administrators)."""
    user_context = g.user_context

    with tracer.start_as_current_span("family.remove", attributes={"family.id": path.member_id}):
        unwrap(current_app.family_member_service.remove(path.member_id, user_context))
        logger.info(
            "Family member removed",
            extra={"family_member_id": path.member_id, "user_id": user_context.user_id}
        )
        return '', 204
