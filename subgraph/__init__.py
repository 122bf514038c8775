"""
Federation subgraph support for SDL-first GraphQL services
"""

from .federation import (
    NOT_FOUND,
    AugmentedSchema,
    EntityDefinition,
    EntityFetchService,
    KeyFieldSet,
    ReferenceResolverRegistry,
    ResolvedEntity,
    Supergraph,
    augment,
    build_subgraph_schema,
    compose,
)
from .utils.errors import (
    CompositionError,
    DuplicateResolverError,
    EntityError,
    EntityErrorKind,
    FederationError,
    SchemaError,
)

__version__ = "1.0.0"

__all__ = [
    "augment", "build_subgraph_schema", "AugmentedSchema",
    "ReferenceResolverRegistry", "NOT_FOUND",
    "EntityFetchService", "ResolvedEntity", "EntityDefinition", "KeyFieldSet",
    "compose", "Supergraph",
    "FederationError", "SchemaError", "DuplicateResolverError", "CompositionError",
    "EntityError", "EntityErrorKind",
]
