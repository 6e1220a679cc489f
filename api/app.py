# SPDX-License-Identifier: Apache-2.0

"""
MuSAIB Benefits API - Flask Application Entry Point

This module initializes the Flask application with OpenAPI 3.0 support,
configures middleware and wires the services behind the benefit request,
family member, service catalog and audit endpoints.
"""

import os
from flask import current_app, jsonify, make_response, request
from flask_openapi3 import OpenAPI, Info, Tag
from observability.config import setup_observability
from observability.middleware import add_observability_middleware

from middleware.error_handler import ErrorHandlerMiddleware, payload_error_body
from middleware.auth import AuthMiddleware
from models.enums import BenefitType
from services.audit import AuditService
from services.auth import AuthService
from services.benefits import BenefitRequestService, FamilyMemberService, ServiceCatalogService
from services.hal import create_hal_formatter
from services.health import HealthCheckService
from services.mongodb import MongoDBService
from services.stores import FamilyMemberStore, MongoServiceCatalog, RequestStore

# Initialize observability first
setup_observability()

# OpenAPI info
info = Info(
    title="MuSAIB Benefits API",
    version="1.0.0",
    description="Benefit requests, family members and service catalog of the MuSAIB mutual fund"
)

tags = [
    Tag(name="Health", description="System health and status")
]


def validation_error_callback(error):
    """Render request validation failures as RFC 7807 problems."""
    detail, validation_errors = payload_error_body(error)
    return make_response(
        jsonify(current_app.hal_formatter.format_validation_error(detail, request.path, validation_errors)),
        400
    )


# Create Flask app with OpenAPI
app = OpenAPI(
    __name__,
    info=info,
    validation_error_status=400,
    validation_error_callback=validation_error_callback
)

# Add observability middleware
add_observability_middleware(app)

# Environment configuration
app.config['ENVIRONMENT'] = os.getenv('ENVIRONMENT', 'development')
app.config['DEBUG'] = app.config['ENVIRONMENT'] == 'development'
app.config['DOCS_ENABLED'] = os.getenv('DOCS_ENABLED', 'true').lower() == 'true'

# Security configuration
app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET', 'dev-secret-key')
app.config['JWT_ALGORITHM'] = os.getenv('JWT_ALGORITHM', 'HS256')

# Database configuration
app.config['MONGODB_URI'] = os.getenv('MONGODB_URI', 'mongodb://localhost:27017/musaib_dev')
app.config['MONGODB_DATABASE'] = os.getenv('MONGODB_DATABASE', 'musaib_dev')
app.config['MONGODB_TRANSACTIONS'] = os.getenv('MONGODB_TRANSACTIONS', 'true').lower() == 'true'

# Feature flags
app.config['OTEL_ENABLED'] = os.getenv('OTEL_ENABLED', 'true').lower() == 'true'

# API configuration
app.config['BASE_URL'] = os.getenv('BASE_URL', 'http://localhost:5000')

# Benefit configuration
app.config['SOCIAL_LOAN_CEILING'] = int(os.getenv('SOCIAL_LOAN_CEILING', '500000'))
app.config['ECONOMIC_LOAN_CEILING'] = int(os.getenv('ECONOMIC_LOAN_CEILING', '2000000'))

loan_ceilings = {
    BenefitType.SOCIAL_LOAN: app.config['SOCIAL_LOAN_CEILING'],
    BenefitType.ECONOMIC_LOAN: app.config['ECONOMIC_LOAN_CEILING'],
}

# Initialize services
mongodb_service = MongoDBService(
    app.config['MONGODB_URI'],
    app.config['MONGODB_DATABASE'],
    app.config['MONGODB_TRANSACTIONS']
)
auth_service = AuthService(app.config['JWT_SECRET_KEY'], app.config['JWT_ALGORITHM'])
audit_service = AuditService(mongodb_service)
health_service = HealthCheckService(mongodb_service)

family_store = FamilyMemberStore(mongodb_service)
request_store = RequestStore(mongodb_service)
service_catalog = MongoServiceCatalog(mongodb_service)

benefit_request_service = BenefitRequestService(
    mongodb_service, request_store, family_store, service_catalog, audit_service, loan_ceilings
)
family_member_service = FamilyMemberService(mongodb_service, family_store, audit_service)
service_catalog_service = ServiceCatalogService(mongodb_service, service_catalog, audit_service)

# Initialize middleware
hal_formatter = create_hal_formatter(app.config['BASE_URL'])
auth_middleware = AuthMiddleware(auth_service)
error_handler = ErrorHandlerMiddleware(app, hal_formatter)

# Make services available to routes
app.mongodb_service = mongodb_service
app.auth_service = auth_service
app.audit_service = audit_service
app.hal_formatter = hal_formatter
app.auth_middleware = auth_middleware
app.benefit_request_service = benefit_request_service
app.family_member_service = family_member_service
app.service_catalog_service = service_catalog_service
app.health_service = health_service

# Register routes
from routes.benefit_requests import requests_bp
from routes.family_members import family_bp
from routes.services_catalog import services_bp
from routes.audit import audit_bp

app.register_api(requests_bp)
app.register_api(family_bp)
app.register_api(services_bp)
app.register_api(audit_bp)


@app.get('/api/healthz', tags=tags)
def health_check():
    """Health check with MongoDB status and process metrics"""
    health_data = app.health_service.get_comprehensive_health()
    status_code = 200 if health_data["status"] == "healthy" else 503

    health_response = app.hal_formatter.builder.build_resource_response(
        health_data,
        {"self": {"href": f"{app.config['BASE_URL']}/api/healthz"}}
    )

    return jsonify(health_response), status_code


if __name__ == '__main__':
    # Development server
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
