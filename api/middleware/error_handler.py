# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Maps HTTP errors, business-rule violations and payload validation errors to
RFC 7807 problem details.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Any, List, Optional, Tuple
from opentelemetry import trace
import logging

from domain.results import DomainErrorCode, WorkflowResult
from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


CLIENT_ERRORS = {
    400: ("bad-request", "Bad Request"),
    401: ("authentication-required", "Authentication Required"),
    403: ("insufficient-permissions", "Insufficient Permissions"),
    404: ("resource-not-found", "Resource Not Found"),
    405: ("method-not-allowed", "Method Not Allowed"),
    409: ("resource-conflict", "Resource Conflict"),
    415: ("unsupported-media-type", "Unsupported Media Type"),
    422: ("validation-error", "Validation Error"),
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, hal_formatter: HalFormatter):
        self.app = app
        self.hal_formatter = hal_formatter
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(DomainException)
        def handle_domain_exception(error):
            return self.handle_domain_error(error)

        @self.app.errorhandler(ValidationException)
        def handle_validation_exception(error):
            logger.warning(
                "Invalid request parameters",
                extra={"path": request.path, "detail": error.message}
            )
            response = self.hal_formatter.format_validation_error(
                error.message, request.path, error.validation_errors
            )
            return jsonify(response), 400

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(error):
            return self.handle_payload_error(error)

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error):
            if error.code is not None and error.code >= 500:
                return self.handle_server_error(error)
            return self.handle_client_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            return self.handle_unexpected_error(error)

    def handle_domain_error(self, error: "DomainException") -> Tuple[Any, int]:
        """Render a business-rule violation."""
        with tracer.start_as_current_span("error_handler.domain_error") as span:
            span.set_attributes({
                "error.type": error.code.value,
                "error.status": error.code.http_status,
                "http.method": request.method,
                "http.path": request.path
            })

            logger.warning(
                f"Business rule violation: {error.code.value}",
                extra={
                    "error_type": error.code.value,
                    "status_code": error.code.http_status,
                    "detail": error.detail,
                    "path": request.path,
                    "method": request.method
                }
            )

            response = self.hal_formatter.format_domain_error(
                error.code, request.path, error.detail, error.validation_errors
            )
            return jsonify(response), error.code.http_status

    def handle_payload_error(self, error: ValidationError) -> Tuple[Any, int]:
        """Render a pydantic validation failure raised while building a model."""
        detail, validation_errors = payload_error_body(error)

        logger.warning(
            "Request validation failed",
            extra={
                "path": request.path,
                "method": request.method,
                "error_count": len(validation_errors)
            }
        )

        response = self.hal_formatter.format_validation_error(detail, request.path, validation_errors)
        return jsonify(response), 400

    def handle_client_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle client errors (4xx status codes)."""
        error_type, title = CLIENT_ERRORS.get(error.code, ("client-error", error.name))

        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.warning(
                f"Client error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "user_agent": request.headers.get('User-Agent'),
                    "ip_address": request.remote_addr
                }
            )

            if error.code == 401:
                response = self.hal_formatter.format_authentication_error(detail, request.path)
            elif error.code == 403:
                response = self.hal_formatter.format_authorization_error(detail, request.path)
            elif error.code == 404:
                response = self.hal_formatter.format_not_found_error(detail, request.path)
            else:
                response = self.hal_formatter.builder.build_error_response(
                    error_type, title, error.code, detail, request.path
                )

            return jsonify(response), error.code

    def handle_server_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle server errors (5xx status codes)."""
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else error.name

            logger.error(
                f"Server error: {error.name}",
                extra={
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            if self.app.config.get('ENV') == 'production':
                detail = "An internal server error occurred"

            response = self.hal_formatter.format_server_error(detail, request.path)
            response['status'] = error.code
            return jsonify(response), error.code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Any, int]:
        """Handle exceptions not caught by specific handlers."""
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if self.app.config.get('ENV') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            response = self.hal_formatter.format_server_error(detail, request.path)
            return jsonify(response), 500


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for malformed request parameters."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class DomainException(CustomException):
    """A business rule refused the operation."""

    def __init__(self, code: DomainErrorCode, detail: Optional[str] = None,
                 validation_errors: Optional[List[Any]] = None):
        self.code = DomainErrorCode(code)
        self.detail = detail or self.code.message
        self.validation_errors = validation_errors
        super().__init__(self.detail, self.code.http_status, self.code.value)

    @classmethod
    def from_result(cls, result: WorkflowResult) -> "DomainException":
        return cls(result.error_code, result.error_message, result.validation_errors)


def unwrap(result: WorkflowResult):
    """Return the entity of a successful result or raise its domain error."""
    if not result.success:
        raise DomainException.from_result(result)
    return result.entity


def payload_error_body(error: ValidationError) -> Tuple[str, List[dict]]:
    """Problem detail and per-field errors for a pydantic validation failure."""
    validation_errors = [
        {
            "field": ".".join(str(part) for part in item["loc"]),
            "message": item["msg"],
            "type": item["type"]
        }
        for item in error.errors()
    ]
    return "Les données soumises sont invalides", validation_errors
