# SPDX-License-Identifier: Apache-2.0

"""
Observability Middleware

Flask instrumentation plus per-request spans attributes and access logging
tagged with the acting member.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import trace
from opentelemetry.instrumentation.flask import FlaskInstrumentor

logger = logging.getLogger(__name__)

# Path parameters copied onto the active span
RESOURCE_ARGS = ("request_id", "member_id", "service_id")


def _actor_fields():
    actor = g.get('user_context')
    if actor is None:
        return {"actor_id": None, "actor_role": None}
    return {"actor_id": actor.user_id, "actor_role": actor.role}


def add_observability_middleware(app: Flask):
    """Instrument the app and log every completed request."""
    FlaskInstrumentor().instrument_app(app)

    @app.before_request
    def start_request_timer():
        g.start_time = time.perf_counter()
        g.trace_id = None

        span = trace.get_current_span()
        if not span.is_recording():
            return

        g.trace_id = format(span.get_span_context().trace_id, "032x")
        attributes = {"http.target": request.path}
        for name in RESOURCE_ARGS:
            value = (request.view_args or {}).get(name)
            if value:
                attributes[f"musaib.{name}"] = value
        span.set_attributes(attributes)

    @app.after_request
    def log_request(response):
        elapsed = round((time.perf_counter() - g.get('start_time', time.perf_counter())) * 1000, 2)
        actor = _actor_fields()

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("http.duration_ms", elapsed)
            if actor["actor_role"]:
                span.set_attribute("musaib.actor.role", actor["actor_role"])

        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        logger.log(
            level,
            "HTTP request completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": elapsed,
                **actor
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id
        return response
