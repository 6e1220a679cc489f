# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the MuSAIB benefits platform.

This package contains pure business logic functions with no side effects:
family eligibility, amount policy, event recency, the request lifecycle and
audit entry construction. They operate on snapshots passed in by the caller
and are testable without external dependencies.
"""
