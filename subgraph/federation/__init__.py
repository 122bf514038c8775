"""
Apollo-style federation support for SDL-first subgraphs
"""

from .composition import Supergraph, compose
from .entities import EntityFetchService, ResolvedEntity, TypedEntity
from .keys import EntityDefinition, KeyFieldSet
from .registry import NOT_FOUND, ReferenceResolverRegistry
from .schema import AugmentedSchema, augment, build_subgraph_schema
from .service import SchemaIntrospectionService, ServiceDefinition

__all__ = [
    "augment", "build_subgraph_schema", "AugmentedSchema",
    "ReferenceResolverRegistry", "NOT_FOUND",
    "EntityFetchService", "ResolvedEntity", "TypedEntity",
    "EntityDefinition", "KeyFieldSet",
    "SchemaIntrospectionService", "ServiceDefinition",
    "compose", "Supergraph",
]
