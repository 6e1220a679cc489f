# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and actor extraction.

This module provides Flask decorators that verify the bearer token, build
the UserContext of the acting member and enforce role restrictions.
"""

from functools import wraps
from flask import request, jsonify, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from models.entities import UserContext
from domain.authorization import check_permission
from models.enums import MemberRole
from services.auth import TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and actor context building for
    protected endpoints.
    """

    def __init__(self, auth_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:]

        return auth_header

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build the actor context from a validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=token_payload["sub"],
            name=token_payload["name"],
            role=MemberRole(token_payload["role"]),
            email=token_payload.get("email"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        """Extract request metadata for the actor context."""
        return {
            "ip_address": request.headers.get('X-Forwarded-For', request.remote_addr),
            "user_agent": request.headers.get('User-Agent', '')
        }


def _auth_error(detail: str, status: int = 401):
    return jsonify(current_app.hal_formatter.format_authentication_error(detail, request.path)), status


def require_auth(auth_middleware: AuthMiddleware) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    The actor is stored in `g.user_context`.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            with tracer.start_as_current_span("auth.middleware.validate_request") as span:
                span.set_attribute("auth.operation", "validate_request")

                token = auth_middleware.extract_token_from_request()
                if not token:
                    span.set_attribute("auth.result", "missing_token")
                    logger.warning("Authentication failed: missing token")
                    return _auth_error("Missing authorization token")

                try:
                    token_payload = auth_middleware.auth_service.validate_token(token)
                except TokenValidationError as e:
                    span.set_attribute("auth.result", "invalid_token")
                    logger.warning(f"Authentication failed: {str(e)}")
                    return _auth_error(str(e))

                user_context = auth_middleware.build_user_context(
                    token_payload, auth_middleware.get_request_info()
                )
                g.user_context = user_context

                span.set_attributes({
                    "auth.result": "success",
                    "user.id": user_context.user_id,
                    "user.role": user_context.role
                })
                logger.debug(
                    "Authentication successful",
                    extra={
                        "user_id": user_context.user_id,
                        "role": user_context.role,
                        "ip_address": user_context.ip_address
                    }
                )

                return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_jwt(f: Callable) -> Callable:
    """Require authentication using the application's AuthMiddleware."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        return require_auth(current_app.auth_middleware)(f)(*args, **kwargs)
    return decorated_function


def require_permission(permission: str) -> Callable:
    """
    Decorator requiring a role permission.

    Must be applied below `require_jwt`.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context: UserContext = g.user_context
            result = check_permission(user_context, permission)
            if not result.allowed:
                logger.warning(
                    "Authorization failed: insufficient permissions",
                    extra={
                        "user_id": user_context.user_id,
                        "role": user_context.role,
                        "required_permission": permission
                    }
                )
                return jsonify(current_app.hal_formatter.format_authorization_error(
                    result.reason, request.path
                )), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
