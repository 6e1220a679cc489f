# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS Level-3 API responses with conditional affordance links.
"""

import math
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin, urlencode

from domain.authorization import (
    family_member_affordances, request_affordances, service_affordances
)
from domain.results import DomainErrorCode
from models.entities import AuditEntry, BenefitRequest, BenefitService, FamilyMember, UserContext
from models.responses import HalLink


ERROR_TITLES = {
    DomainErrorCode.CARDINALITY_EXCEEDED: "Cardinality Exceeded",
    DomainErrorCode.MISSING_AMOUNT: "Missing Amount",
    DomainErrorCode.AMOUNT_OUT_OF_RANGE: "Amount Out Of Range",
    DomainErrorCode.EVENT_NOT_CLAIMABLE: "Event Not Claimable",
    DomainErrorCode.ILLEGAL_TRANSITION: "Illegal Transition",
    DomainErrorCode.COMMENT_REQUIRED: "Comment Required",
    DomainErrorCode.INVALID_PAYMENT: "Invalid Payment",
    DomainErrorCode.SERVICE_UNAVAILABLE: "Service Unavailable",
    DomainErrorCode.PERMISSION_DENIED: "Insufficient Permissions",
    DomainErrorCode.VALIDATION_FAILED: "Validation Error",
    DomainErrorCode.NOT_FOUND: "Resource Not Found",
}


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url + '/', path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated
        )


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, params: Dict[str, Any], page: int, page_size: int,
                   title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'page_size': page_size})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        page_size: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build self/first/prev/next/last links for a collection."""
        params = {key: value for key, value in (query_params or {}).items() if value is not None}
        links = {'self': self._page_link(base_path, params, current_page, page_size, "Current page")}

        if current_page > 1:
            links['first'] = self._page_link(base_path, params, 1, page_size, "First page")
            links['prev'] = self._page_link(base_path, params, current_page - 1, page_size, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, params, current_page + 1, page_size, "Next page")
            links['last'] = self._page_link(base_path, params, total_pages, page_size, "Last page")

        return links


class HalResponseBuilder:
    """HAL response builder for resources, collections and problem details."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        response = dict(data)
        response['_links'] = links
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        total: int,
        page: int,
        page_size: int,
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response with pagination links."""
        total_pages = math.ceil(total / page_size) if page_size > 0 else 1

        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            page,
            total_pages,
            page_size,
            query_params
        )

        return {
            'total': total,
            'page': page,
            'page_size': page_size,
            'total_pages': total_pages,
            '_links': {rel: link.model_dump(exclude_none=True) for rel, link in pagination_links.items()},
            '_embedded': {
                'items': items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"https://api.musaib.bj/problems/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type in ("validation-error", DomainErrorCode.VALIDATION_FAILED.value):
            links['schema'] = self.link_builder.build_link("/openapi/openapi.json", title="API schema")

        error_response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return error_response


def _dump(entity) -> Dict[str, Any]:
    return entity.model_dump(mode="json", by_alias=True)


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.builder = HalResponseBuilder(base_url)

    # Resources

    def format_request(self, request: BenefitRequest, actor: UserContext) -> Dict[str, Any]:
        """Format a benefit request with its lifecycle affordances."""
        return self.builder.build_resource_response(
            _dump(request), request_affordances(request, actor, self.base_url)
        )

    def format_request_collection(self, requests: List[BenefitRequest], total: int, page: int,
                                  page_size: int, actor: UserContext,
                                  filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        items = [self.format_request(request, actor) for request in requests]
        return self.builder.build_collection_response(items, total, page, page_size, "/api/requests", filters)

    def format_family_member(self, record: FamilyMember, actor: UserContext) -> Dict[str, Any]:
        return self.builder.build_resource_response(
            _dump(record), family_member_affordances(record, actor, self.base_url)
        )

    def format_family_collection(self, records: List[FamilyMember], actor: UserContext,
                                 slots: Dict[str, Dict[str, int]]) -> Dict[str, Any]:
        response = self.builder.build_collection_response(
            [self.format_family_member(record, actor) for record in records],
            len(records), 1, max(len(records), 1), "/api/family-members"
        )
        response['slots'] = slots
        return response

    def format_service(self, service: BenefitService, actor: UserContext) -> Dict[str, Any]:
        return self.builder.build_resource_response(
            _dump(service), service_affordances(service, actor, self.base_url)
        )

    def format_service_collection(self, services: List[BenefitService], actor: UserContext) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [self.format_service(service, actor) for service in services],
            len(services), 1, max(len(services), 1), "/api/services"
        )

    def format_audit_collection(self, entries: List[AuditEntry], total: int, page: int, page_size: int,
                                filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.builder.build_collection_response(
            [_dump(entry) for entry in entries], total, page, page_size, "/api/audit-logs", filters
        )

    # Errors

    def format_domain_error(
        self,
        code: DomainErrorCode,
        instance: str,
        detail: Optional[str] = None,
        validation_errors: Optional[List[Any]] = None
    ) -> Dict[str, Any]:
        """Format a business-rule violation as a problem detail."""
        code = DomainErrorCode(code)
        return self.builder.build_error_response(
            code.value,
            ERROR_TITLES[code],
            code.http_status,
            detail or code.message,
            instance,
            validation_errors
        )

    def format_validation_error(self, detail: str, instance: str,
                                validation_errors: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "validation-error", "Validation Error", 400, detail, instance, validation_errors
        )

    def format_authentication_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "authentication-required", "Authentication Required", 401, detail, instance
        )

    def format_authorization_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "insufficient-permissions", "Insufficient Permissions", 403, detail, instance
        )

    def format_not_found_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "resource-not-found", "Resource Not Found", 404, detail, instance
        )

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.builder.build_error_response(
            "internal-server-error", "Internal Server Error", 500, detail, instance
        )


def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
