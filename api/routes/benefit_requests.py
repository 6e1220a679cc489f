# SPDX-License-Identifier: Apache-2.0

"""
Benefit request endpoints.

Members submit requests; controllers accept or reject pending ones;
administrators validate or reject accepted ones.
"""

from flask import request, jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from middleware.auth import require_jwt
from middleware.error_handler import unwrap
from models.enums import LifecycleAction
from models.requests import (
    RequestListQuery, RequestPath, SubmitBenefitRequest, TransitionRequest
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

requests_tag = Tag(name="Benefit requests", description="Benefit request submission and review")
requests_bp = APIBlueprint(
    'benefit_requests',
    __name__,
    url_prefix='/api/requests',
    abp_tags=[requests_tag]
)


@requests_bp.post('')
@require_jwt
def submit_request(body: SubmitBenefitRequest):
    """
    Submit a benefit request.

    The amount of allowances is taken from the service catalog; loans carry
    the requested amount, bounded by the loan ceiling.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "requests.submit",
        attributes={"user.id": user_context.user_id, "request.benefit_type": str(body.benefit_type)}
    ):
        result = current_app.benefit_request_service.submit(body, user_context)
        benefit_request = unwrap(result)

        logger.info(
            "Benefit request submitted",
            extra={
                "request_id": benefit_request.id,
                "user_id": user_context.user_id,
                "benefit_type": benefit_request.benefit_type,
                "amount": benefit_request.amount
            }
        )

        response = current_app.hal_formatter.format_request(benefit_request, user_context)
        return jsonify(response), 201, {'Location': response['_links']['self']['href']}


@requests_bp.get('')
@require_jwt
def list_requests(query: RequestListQuery):
    """List the requests visible to the caller, newest first."""
    user_context = g.user_context

    with tracer.start_as_current_span("requests.list", attributes={"user.id": user_context.user_id}):
        result = current_app.benefit_request_service.list(
            user_context, query, page=query.page, page_size=query.page_size
        )

        filters = query.model_dump(exclude={"page", "page_size"}, exclude_none=True)
        return jsonify(current_app.hal_formatter.format_request_collection(
            result.items, result.total, result.page, result.page_size, user_context, filters
        ))


@requests_bp.get('/<request_id>')
@require_jwt
def get_request(path: RequestPath):
    """Get one benefit request with its available actions."""
    user_context = g.user_context
    benefit_request = unwrap(current_app.benefit_request_service.get(path.request_id, user_context))
    return jsonify(current_app.hal_formatter.format_request(benefit_request, user_context))


def _transition(request_id: str, action: LifecycleAction):
    user_context = g.user_context
    payload = TransitionRequest.model_validate(request.get_json(silent=True) or {})

    with tracer.start_as_current_span(
        f"requests.{action.value}",
        attributes={"user.id": user_context.user_id, "request.id": request_id}
    ):
        result = current_app.benefit_request_service.transition(
            request_id, action, user_context, payload.comment
        )
        benefit_request = unwrap(result)

        logger.info(
            "Benefit request transitioned",
            extra={
                "request_id": request_id,
                "action": action.value,
                "status": benefit_request.status,
                "user_id": user_context.user_id
            }
        )

        return jsonify(current_app.hal_formatter.format_request(benefit_request, user_context))


@requests_bp.post('/<request_id>/accept')
@require_jwt
def accept_request(path: RequestPath):
    """Accept a pending request (controllers)."""
    return _transition(path.request_id, LifecycleAction.ACCEPT)


@requests_bp.post('/<request_id>/reject')
@require_jwt
def reject_request(path: RequestPath):
    """Reject a request with a mandatory comment (controllers and administrators)."""
    return _transition(path.request_id, LifecycleAction.REJECT)


@requests_bp.post('/<request_id>/validate')
@require_jwt
def validate_request(path: RequestPath):
    """Validate an accepted request (administrators)."""
    return _transition(path.request_id, LifecycleAction.VALIDATE)
