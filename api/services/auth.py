# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT verification.

Member accounts and sessions are managed by the identity provider; this
service only verifies the HS256 bearer tokens it issues and, for scripts and
tests, signs tokens with the same shared secret.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

from models.enums import MemberRole

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

REQUIRED_CLAIMS = ("sub", "name", "role")


class AuthenticationError(Exception):
    """Raised when a token cannot be issued."""
    pass


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT service with HS256 signing.

    Tokens carry `sub` (member ID), `name`, `email` and `role`.
    """

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None,
                 access_token_expire_minutes: int = 60):
        """
        Initialize the authentication service.

        Args:
            secret: Shared HMAC secret
            algorithm: JWT algorithm (HS256 unless configured otherwise)
            access_token_expire_minutes: Lifetime of tokens issued by this service
        """
        self.secret = secret or os.getenv("JWT_SECRET", "dev-secret-key")
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "HS256")
        self.access_token_expire_minutes = access_token_expire_minutes

    def generate_access_token(self, user_id: str, name: str, role, email: Optional[str] = None) -> str:
        """
        Sign an access token for a member.

        Args:
            user_id: Member ID (`sub`)
            name: Display name
            role: Portal role
            email: Email address

        Returns:
            Encoded JWT
        """
        with tracer.start_as_current_span("auth.generate_access_token") as span:
            span.set_attributes({"auth.operation": "generate_access_token", "user.id": user_id})

            now = datetime.now(timezone.utc)
            payload = {
                "sub": user_id,
                "name": name,
                "email": email,
                "role": MemberRole(role).value,
                "iat": now,
                "exp": now + timedelta(minutes=self.access_token_expire_minutes),
                "type": "access"
            }

            try:
                token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
            except jwt.PyJWTError as e:
                logger.error(f"Token generation failed: {str(e)}")
                raise AuthenticationError(f"Failed to generate token: {str(e)}")

            logger.info("JWT access token generated", extra={"user_id": user_id, "role": payload["role"]})
            return token

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid, expired or lacks claims
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attribute("auth.operation", "validate_token")

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            missing = [claim for claim in REQUIRED_CLAIMS if not payload.get(claim)]
            if missing:
                raise TokenValidationError(f"Token is missing claims: {', '.join(missing)}")

            try:
                MemberRole(payload["role"])
            except ValueError:
                raise TokenValidationError(f"Unknown role: {payload['role']}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": payload["sub"]
            })
            logger.debug("Token validated successfully", extra={"user_id": payload["sub"]})

            return payload
