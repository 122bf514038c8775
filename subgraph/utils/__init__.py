"""
Subgraph Utilities
"""

from .errors import (
    CompositionError,
    DuplicateResolverError,
    EntityError,
    EntityErrorKind,
    ErrorCode,
    ErrorHandler,
    FederationError,
    SchemaError,
)

__all__ = [
    "ErrorCode", "FederationError", "SchemaError", "DuplicateResolverError",
    "CompositionError", "EntityError", "EntityErrorKind", "ErrorHandler",
]
