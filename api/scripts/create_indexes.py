#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Create the MongoDB indexes of the benefits database.

The unique (ownerId, slot) index on family members is what keeps relation
counts within bounds when two registrations race; run this before serving
traffic.
"""

import sys
import os
import logging

from pymongo.errors import PyMongoError

# Add the parent directory to the path so we can import from api
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.mongodb import FAMILY_COLLECTION, close_mongodb_connection, get_mongodb_service

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


def main() -> int:
    mongodb_service = get_mongodb_service()
    try:
        health = mongodb_service.health_check()
        if health['status'] != 'healthy':
            logger.error(f"MongoDB is not healthy: {health}")
            return 1

        logger.info(f"Connected to MongoDB {health['version']} - Database: {health['database']}")

        mongodb_service.create_indexes()

        family_indexes = mongodb_service.get_collection(FAMILY_COLLECTION).index_information()
        if "owner_slot_unique" not in family_indexes:
            logger.error("Family slot index is missing after index creation")
            return 1

        logger.info(f"Family member indexes: {', '.join(sorted(family_indexes))}")
        return 0

    except PyMongoError as e:
        logger.error(f"Failed to create indexes: {e}")
        return 1
    finally:
        close_mongodb_connection()


if __name__ == "__main__":
    sys.exit(main())
