# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit log endpoints for querying the audit trail.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging
from datetime import datetime, timezone
from typing import Optional

from middleware.auth import require_jwt, require_permission
from middleware.error_handler import ValidationException
from models.requests import AuditLogQuery, AuditStatisticsQuery
from services.audit import AuditFilters

# Set up logging and tracing
logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

# Create API blueprint
audit_tag = Tag(name="Audit Logs", description="Audit trail querying")
audit_bp = APIBlueprint(
    'audit',
    __name__,
    url_prefix='/api/audit-logs',
    abp_tags=[audit_tag]
)


def _parse_date(value: Optional[str], field: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        raise ValidationException(
            f"Invalid {field} format",
            [{"field": field, "message": "Expected an ISO 8601 date"}]
        )
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@audit_bp.get('')
@require_jwt
@require_permission("audit:read")
def list_audit_logs(query: AuditLogQuery):
    """
    List audit log entries, newest first.

    Supports filtering by severity, module, user, free text and date range.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "audit.list",
        attributes={"user.id": user_context.user_id, "operation": "list_audit_logs"}
    ) as span:
        filters = AuditFilters(
            severity=query.severity,
            module=query.module,
            user_id=query.user_id,
            search=query.search,
            start_date=_parse_date(query.date_from, "date_from"),
            end_date=_parse_date(query.date_to, "date_to")
        )

        result = current_app.audit_service.query_audit_logs(filters, query.page, query.page_size)
        span.set_attribute("audit.results.count", len(result.items))

        logger.info(
            "Audit logs retrieved successfully",
            extra={
                "user_id": user_context.user_id,
                "total_results": result.total,
                "page": query.page
            }
        )

        query_params = query.model_dump(exclude={"page", "page_size"}, exclude_none=True)
        return jsonify(current_app.hal_formatter.format_audit_collection(
            result.items, result.total, result.page, result.page_size, query_params
        ))


@audit_bp.get('/statistics')
@require_jwt
@require_permission("audit:read")
def get_audit_statistics(query: AuditStatisticsQuery):
    """
    Get audit statistics.

    Returns entry counts per severity and per module over the last days.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "audit.statistics",
        attributes={"user.id": user_context.user_id, "audit.statistics.days": query.days}
    ):
        statistics = current_app.audit_service.get_audit_statistics(query.days)

        base_url = current_app.config['BASE_URL']
        response_data = {
            **statistics,
            "_links": {
                "self": {"href": f"{base_url}/api/audit-logs/statistics?days={query.days}"},
                "audit_logs": {"href": f"{base_url}/api/audit-logs"}
            }
        }

        logger.info(
            "Audit statistics retrieved successfully",
            extra={
                "user_id": user_context.user_id,
                "days": query.days,
                "total_actions": statistics["total_actions"]
            }
        )

        return jsonify(response_data), 200
