# SPDX-License-Identifier: Apache-2.0

"""
Service catalog endpoints.

Everyone reads the catalog; administrators create, edit and toggle entries.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from middleware.auth import require_jwt, require_permission
from middleware.error_handler import unwrap
from models.requests import CreateServiceRequest, ServicePath, UpdateServiceRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

services_tag = Tag(name="Services", description="Catalog of allowances and loans")
services_bp = APIBlueprint(
    'services_catalog',
    __name__,
    url_prefix='/api/services',
    abp_tags=[services_tag]
)


@services_bp.get('')
@require_jwt
def list_services():
    """List catalog entries; members only see active ones."""
    user_context = g.user_context
    services = current_app.service_catalog_service.list(user_context)
    return jsonify(current_app.hal_formatter.format_service_collection(services, user_context))


@services_bp.get('/<service_id>')
@require_jwt
def get_service(path: ServicePath):
    user_context = g.user_context
    service = unwrap(current_app.service_catalog_service.get(path.service_id))
    return jsonify(current_app.hal_formatter.format_service(service, user_context))


@services_bp.post('')
@require_jwt
@require_permission("service:manage")
def create_service(body: CreateServiceRequest):
    """Create a catalog entry."""
    user_context = g.user_context

    with tracer.start_as_current_span("services.create", attributes={"service.type": str(body.benefit_type)}):
        service = unwrap(current_app.service_catalog_service.create(body, user_context))
        logger.info(
            "Service created",
            extra={"service_id": service.id, "benefit_type": service.benefit_type, "user_id": user_context.user_id}
        )
        response = current_app.hal_formatter.format_service(service, user_context)
        return jsonify(response), 201, {'Location': response['_links']['self']['href']}


@services_bp.put('/<service_id>')
@require_jwt
@require_permission("service:manage")
def update_service(path: ServicePath, body: UpdateServiceRequest):
    """Edit the name, description, amount or conditions of a catalog entry."""
    user_context = g.user_context

    with tracer.start_as_current_span("services.update", attributes={"service.id": path.service_id}):
        service = unwrap(current_app.service_catalog_service.update(path.service_id, body, user_context))
        return jsonify(current_app.hal_formatter.format_service(service, user_context))


@services_bp.post('/<service_id>/toggle')
@require_jwt
@require_permission("service:manage")
def toggle_service(path: ServicePath):
    """Activate or deactivate a catalog entry."""
    user_context = g.user_context

    with tracer.start_as_current_span("services.toggle", attributes={"service.id": path.service_id}):
        service = unwrap(current_app.service_catalog_service.toggle(path.service_id, user_context))
        logger.info(
            "Service availability changed",
            extra={"service_id": service.id, "is_active": service.is_active, "user_id": user_context.user_id}
        )
        return jsonify(current_app.hal_formatter.format_service(service, user_context))
