# SPDX-License-Identifier: Apache-2.0

"""
Health Check Service

Reports MongoDB availability, the loaded service catalog and basic process
metrics for the `/api/healthz` endpoint.
"""

import os
import time
import psutil
from typing import Dict, Any
from opentelemetry import trace

from models.base import utc_now
from services.mongodb import MongoDBService, SERVICES_COLLECTION

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "musaib-benefits-api"


class HealthCheckService:
    """Service for system health monitoring."""

    def __init__(self, mongodb_service: MongoDBService, service_version: str = "1.0.0"):
        self.mongodb_service = mongodb_service
        self.service_version = service_version

    def get_comprehensive_health(self) -> Dict[str, Any]:
        """Health status of the API and its database."""
        with tracer.start_as_current_span("health.comprehensive_check") as span:
            start_time = time.time()

            mongodb_health = self._check_mongodb_health()
            overall_status = "healthy" if mongodb_health["status"] == "healthy" else "unhealthy"

            response_time_ms = round((time.time() - start_time) * 1000, 2)

            health_data = {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": utc_now().isoformat(),
                "response_time_ms": response_time_ms,
                "dependencies": {
                    "mongodb": mongodb_health
                },
                "system_metrics": self._get_system_metrics(),
                "configuration": self._get_configuration_status()
            }

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms,
                "health.mongodb_status": mongodb_health["status"]
            })

            return health_data

    def _check_mongodb_health(self) -> Dict[str, Any]:
        """Ping MongoDB and count the active catalog entries."""
        with tracer.start_as_current_span("health.mongodb_check") as span:
            start_time = time.time()
            health_info = self.mongodb_service.health_check()
            health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)
            health_info["last_check"] = utc_now().isoformat()

            if health_info["status"] == "healthy":
                health_info["active_services"] = self.mongodb_service.count(
                    SERVICES_COLLECTION, {"isActive": True}
                )

            span.set_attributes({
                "mongodb.status": health_info["status"],
                "mongodb.response_time_ms": health_info["response_time_ms"]
            })

            return health_info

    def _get_system_metrics(self) -> Dict[str, Any]:
        """Memory and CPU usage of the API process."""
        process = psutil.Process(os.getpid())
        memory = process.memory_info()

        return {
            "cpu_percent": process.cpu_percent(interval=None),
            "memory_rss_mb": round(memory.rss / 1024 / 1024, 2),
            "uptime_seconds": round(time.time() - process.create_time(), 2),
            "load_average": list(os.getloadavg()) if hasattr(os, 'getloadavg') else None
        }

    def _get_configuration_status(self) -> Dict[str, Any]:
        return {
            "mongodb_uri_configured": bool(os.getenv('MONGODB_URI')),
            "jwt_secret_configured": bool(os.getenv('JWT_SECRET')),
            "transactions_enabled": self.mongodb_service.use_transactions,
            "environment": os.getenv('ENVIRONMENT', 'development')
        }
