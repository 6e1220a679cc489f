# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Audit service persisting the append-only audit trail with OpenTelemetry correlation.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from bson import ObjectId
from opentelemetry import trace
from pymongo.client_session import ClientSession

from domain.audit_trail import AuditRecorder
from models.base import utc_now
from models.entities import AuditEntry
from models.enums import AuditSeverity
from .mongodb import AUDIT_COLLECTION, MongoDBService, PaginationResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class AuditFilters:
    """Filters for audit log queries."""

    def __init__(
        self,
        severity: Optional[str] = None,
        module: Optional[str] = None,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        entity_id: Optional[str] = None
    ):
        self.severity = severity
        self.module = module
        self.user_id = user_id
        self.search = search
        self.start_date = start_date
        self.end_date = end_date
        self.entity_id = entity_id

    def to_mongo_query(self) -> Dict[str, Any]:
        """Convert filters to MongoDB query."""
        query = {}

        if self.severity:
            query["severity"] = AuditSeverity(self.severity).value

        if self.module:
            query["module"] = self.module

        if self.user_id:
            query["userId"] = self.user_id

        if self.entity_id:
            query["entityId"] = self.entity_id

        if self.search:
            pattern = {"$regex": re.escape(self.search), "$options": "i"}
            query["$or"] = [
                {"action": pattern},
                {"details": pattern},
                {"userName": pattern},
            ]

        # Date range filter
        if self.start_date or self.end_date:
            date_filter = {}
            if self.start_date:
                date_filter["$gte"] = self.start_date
            if self.end_date:
                date_filter["$lte"] = self.end_date
            query["timestamp"] = date_filter

        return query


class AuditService(AuditRecorder):
    """Audit recorder backed by the `audit_logs` collection."""

    def __init__(self, mongo_service: MongoDBService):
        """Initialize audit service with MongoDB dependency."""
        self.mongo_service = mongo_service
        self.collection_name = AUDIT_COLLECTION
        logger.info("Audit service initialized")

    def record(self, entry: AuditEntry, session: Optional[ClientSession] = None) -> str:
        """
        Append an audit entry with trace correlation and structured logging.

        Args:
            entry: Entry built by the domain
            session: Client session of the surrounding transaction, if any

        Returns:
            str: ID of the stored entry

        Raises:
            Any storage error, so that the surrounding transaction aborts
        """
        with tracer.start_as_current_span("audit.record") as span:
            try:
                span_context = span.get_span_context()
                if span_context.is_valid and entry.trace_id is None:
                    entry = entry.model_copy(update={
                        "trace_id": format(span_context.trace_id, "032x"),
                        "span_id": format(span_context.span_id, "016x"),
                    })

                span.set_attributes({
                    "audit.action": entry.action,
                    "audit.module": entry.module,
                    "audit.severity": entry.severity,
                    "audit.user_id": entry.user_id or "system",
                })

                document = entry.model_dump(by_alias=True)
                document["_id"] = ObjectId(document.pop("id"))
                audit_id = self.mongo_service.insert(self.collection_name, document, session=session)

                logger.info(
                    "Audit trail entry created",
                    extra={
                        "audit_id": audit_id,
                        "audit_action": entry.action,
                        "audit_module": entry.module,
                        "severity": entry.severity,
                        "entity_id": entry.entity_id,
                        "user_id": entry.user_id,
                        "trace_id": entry.trace_id,
                        "audit_category": "business_action"
                    }
                )

                return audit_id

            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to create audit trail entry",
                    extra={
                        "audit_action": entry.action,
                        "audit_module": entry.module,
                        "user_id": entry.user_id,
                        "error": str(e)
                    },
                    exc_info=True
                )
                raise

    def query_audit_logs(
        self,
        filters: AuditFilters,
        page: int = 1,
        page_size: int = 20
    ) -> PaginationResult:
        """
        Query audit logs with filtering and pagination, newest first.

        Args:
            filters: Audit log filters
            page: Page number (1-based)
            page_size: Number of items per page

        Returns:
            PaginationResult of AuditEntry
        """
        with tracer.start_as_current_span("audit.query_logs") as span:
            mongo_filters = filters.to_mongo_query()

            span.set_attributes({
                "audit.query.page": page,
                "audit.query.page_size": page_size,
                "audit.query.filters_count": len(mongo_filters)
            })

            result = self.mongo_service.paginate(
                self.collection_name,
                mongo_filters,
                page=page,
                page_size=page_size,
                sort_by="timestamp"
            )
            result.items = [_entry_from_document(doc) for doc in result.items]

            logger.info(
                "Audit logs queried successfully",
                extra={
                    "page": page,
                    "page_size": page_size,
                    "total_results": result.total,
                    "returned_items": len(result.items)
                }
            )

            return result

    def get_audit_statistics(self, days: int = 30, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Count audit entries per severity and module over the last `days` days.

        Args:
            days: Number of days to include in statistics
            now: Reference time

        Returns:
            Dict: Audit statistics
        """
        with tracer.start_as_current_span("audit.get_statistics") as span:
            end_date = now or utc_now()
            start_date = end_date - timedelta(days=days)

            span.set_attributes({
                "audit.stats.days": days,
                "audit.stats.start_date": start_date.isoformat(),
                "audit.stats.end_date": end_date.isoformat()
            })

            pipeline = [
                {"$match": {"timestamp": {"$gte": start_date, "$lte": end_date}}},
                {"$group": {
                    "_id": {"severity": "$severity", "module": "$module"},
                    "count": {"$sum": 1}
                }}
            ]
            rows = self.mongo_service.aggregate(self.collection_name, pipeline)

            statistics = {
                "period": {
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                    "days": days
                },
                "total_actions": 0,
                "by_severity": {severity.value: 0 for severity in AuditSeverity},
                "by_module": {}
            }

            for row in rows:
                severity = row["_id"].get("severity")
                module = row["_id"].get("module")
                statistics["total_actions"] += row["count"]
                statistics["by_severity"][severity] = statistics["by_severity"].get(severity, 0) + row["count"]
                statistics["by_module"][module] = statistics["by_module"].get(module, 0) + row["count"]

            logger.info(
                "Audit statistics calculated",
                extra={
                    "days": days,
                    "total_actions": statistics["total_actions"],
                    "modules_count": len(statistics["by_module"])
                }
            )

            return statistics


def _entry_from_document(document: Dict[str, Any]) -> AuditEntry:
    data = dict(document)
    data["id"] = str(data.pop("_id"))
    return AuditEntry.model_validate(data)


# Singleton instance for application use
_audit_service: Optional[AuditService] = None


def get_audit_service(mongo_service: Optional[MongoDBService] = None) -> AuditService:
    """Get singleton audit service instance."""
    global _audit_service
    if _audit_service is None:
        from .mongodb import get_mongodb_service
        mongo_svc = mongo_service or get_mongodb_service()
        _audit_service = AuditService(mongo_svc)
    return _audit_service
