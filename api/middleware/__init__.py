# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the authentication decorators and the error handlers
that turn domain failures into problem responses for the MuSAIB benefits API.
"""
