"""
Reference Resolver Registry
"""

from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..utils.errors import DuplicateResolverError, SchemaError


class _NotFound:
    """Marker a reference resolver returns when the entity does not exist"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()

ReferenceResolver = Callable[[Dict[str, Any], Any], Any]


class ReferenceResolverRegistry:
    """
    Maps entity type names to reference resolvers.

    Built once at startup and handed to the schema; the schema freezes it so
    request-time reads need no locking.

    Example:
        registry = ReferenceResolverRegistry()

        @registry.reference_resolver("User")
        async def resolve_user(representation, info):
            return await info.context["loaders"]["user"].load(representation["id"])
    """

    def __init__(self, allow_override: bool = False):
        self.allow_override = allow_override
        self._resolvers: Dict[str, ReferenceResolver] = {}
        self._frozen = False

    def register(self, type_name: str, resolver: ReferenceResolver) -> None:
        """Register the reference resolver for an entity type"""
        if self._frozen:
            raise SchemaError(
                f"Cannot register a resolver for '{type_name}': the schema has already been built",
                type_name=type_name,
            )
        if not callable(resolver):
            raise SchemaError(f"Reference resolver for '{type_name}' is not callable", type_name=type_name)

        existing = self._resolvers.get(type_name)
        if existing is not None and existing is not resolver:
            if not self.allow_override:
                raise DuplicateResolverError(type_name)
            logger.warning(f"Overriding reference resolver for entity type '{type_name}'")

        self._resolvers[type_name] = resolver
        logger.debug(f"Registered reference resolver for '{type_name}'")

    def reference_resolver(self, type_name: str) -> Callable[[ReferenceResolver], ReferenceResolver]:
        """Decorator form of register()"""
        def decorator(func: ReferenceResolver) -> ReferenceResolver:
            self.register(type_name, func)
            return func
        return decorator

    def lookup(self, type_name: str) -> Optional[ReferenceResolver]:
        return self._resolvers.get(type_name)

    def type_names(self) -> List[str]:
        return list(self._resolvers)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._resolvers

    def __len__(self) -> int:
        return len(self._resolvers)
