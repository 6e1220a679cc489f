#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Seed the service catalog with the default allowances and loans.

Existing entries are left untouched, so the script can be re-run after an
administrator changed amounts or conditions.
"""

import sys
import os
import logging

from pymongo.errors import PyMongoError

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from domain.catalog import default_services
from services.mongodb import close_mongodb_connection, get_mongodb_service
from services.stores import MongoServiceCatalog

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def seed(catalog: MongoServiceCatalog) -> int:
    """Insert missing default services; returns how many were created."""
    created = 0
    for service in default_services():
        if catalog.get_by_type(service.benefit_type) is not None:
            logger.info(f"Service already present: {service.benefit_type}")
            continue
        service.created_by = "system"
        service.updated_by = "system"
        catalog.create(service)
        created += 1
        logger.info(f"Service created: {service.name}")
    return created


def main() -> int:
    mongodb_service = get_mongodb_service()
    try:
        created = seed(MongoServiceCatalog(mongodb_service))
        logger.info(f"Service catalog seeded ({created} new entries)")
        return 0
    except PyMongoError as e:
        logger.error(f"Failed to seed service catalog: {e}")
        return 1
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    sys.exit(main())
