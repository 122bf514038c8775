"""
Subgraph SDL service (`_service` root field)
"""

from dataclasses import dataclass
from typing import Any, Optional

from graphql import DocumentNode, print_ast


@dataclass(frozen=True)
class ServiceDefinition:
    """Service definition returned by `_service`"""

    sdl: str


class SchemaIntrospectionService:
    """
    Serializes the augmented subgraph document for composition tooling.

    Unlike a standard introspection query the output keeps directive
    applications (`@key`, `@extends`, `@external`, ...). The field is always
    enabled; restricting network access to it is a deployment concern.
    """

    def __init__(self, document: DocumentNode):
        self._document = document
        self._sdl: Optional[str] = None

    def get_sdl(self) -> str:
        if self._sdl is None:
            self._sdl = print_ast(self._document)
        return self._sdl

    def resolve_service(self, _root: Any, _info: Any) -> ServiceDefinition:
        """GraphQL resolver for `_service`"""
        return ServiceDefinition(sdl=self.get_sdl())
