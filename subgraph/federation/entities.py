"""
Federation Entity Resolvers

Implements the `_entities` root field: a batch of representations in, a
position-aligned list of entities (or per-position errors) out.
"""

import asyncio
import inspect
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Union

from graphql import GraphQLResolveInfo
from loguru import logger
from starlette.concurrency import run_in_threadpool

from ..core.config import Settings, get_settings
from ..utils.errors import EntityError, ErrorCode, FederationError
from .keys import EntityDefinition
from .registry import NOT_FOUND, ReferenceResolverRegistry


class ResolvedEntity(NamedTuple):
    """A found entity tagged with its concrete type"""

    typename: str
    value: Any


EntityResult = Union[ResolvedEntity, EntityError, None]


class TypedEntity:
    """
    Wraps a non-mapping entity value so the `_Entity` union can resolve it.

    Attribute reads are delegated to the wrapped value, so field resolvers
    and graphql-core's default resolver see the original object's fields.
    """

    def __init__(self, typename: str, value: Any):
        self.__typename = typename
        self.__wrapped__ = value

    @property
    def entity_typename(self) -> str:
        return self.__typename

    def __getattr__(self, name: str) -> Any:
        if name == "__wrapped__":
            raise AttributeError(name)
        return getattr(self.__wrapped__, name)

    def __repr__(self) -> str:
        return f"TypedEntity({self.__typename!r}, {self.__wrapped__!r})"


def tag_entity(entity: ResolvedEntity) -> Any:
    """Attach the concrete type name to a resolved value for union serialization"""
    if isinstance(entity.value, Mapping):
        return {**entity.value, "__typename": entity.typename}
    return TypedEntity(entity.typename, entity.value)


def resolve_entity_type(value: Any, info: GraphQLResolveInfo, abstract_type: Any) -> Optional[str]:
    """resolve_type for the `_Entity` union"""
    if isinstance(value, TypedEntity):
        return value.entity_typename
    if isinstance(value, Mapping):
        typename = value.get("__typename")
        if isinstance(typename, str):
            return typename
    class_name = type(value).__name__
    if any(member.name == class_name for member in abstract_type.types):
        return class_name
    return None


class EntityFetchService:
    """
    Resolves batches of entity representations through the registry.

    Each representation is handled independently and concurrently; one
    failure never aborts the rest of the batch.
    """

    def __init__(
        self,
        entities: Mapping[str, EntityDefinition],
        registry: ReferenceResolverRegistry,
        settings: Optional[Settings] = None,
    ):
        self.entities = dict(entities)
        self.registry = registry
        self.settings = settings or get_settings()

    async def fetch_entities(
        self,
        representations: Sequence[Any],
        info: Optional[GraphQLResolveInfo] = None,
    ) -> List[EntityResult]:
        """Resolve representations; the result is aligned with the input by position"""
        limit = self.settings.max_representations
        if limit is not None and len(representations) > limit:
            raise FederationError(
                f"Too many representations: {len(representations)} (limit {limit})",
                ErrorCode.TOO_MANY_REPRESENTATIONS,
                extensions={"limit": limit, "received": len(representations)},
            )

        results = await asyncio.gather(
            *(
                self._fetch_one(index, representation, info)
                for index, representation in enumerate(representations)
            )
        )

        failures = sum(1 for result in results if isinstance(result, EntityError))
        logger.debug(f"Resolved {len(results)} representations ({failures} failed)")
        return list(results)

    async def _fetch_one(self, index: int, representation: Any, info: Optional[GraphQLResolveInfo]) -> EntityResult:
        """Resolve a single representation"""
        if not isinstance(representation, Mapping):
            return EntityError.malformed(index, "expected an object")

        typename = representation.get("__typename")
        if typename is None:
            return EntityError.malformed(index, "missing __typename")
        if not isinstance(typename, str):
            return EntityError.malformed(index, "__typename must be a string")

        entity = self.entities.get(typename)
        if entity is None:
            return EntityError.unresolvable(index, typename, "not an entity type of this subgraph")

        key = entity.match_key(representation)
        if key is None:
            return EntityError.key_mismatch(index, typename, entity.missing_fields(representation))

        resolver = self.registry.lookup(typename)
        if resolver is None:
            return EntityError.unresolvable(index, typename, "no reference resolver registered")

        try:
            value = await self._invoke(resolver, dict(representation), info)
        except Exception as error:
            logger.opt(exception=error).warning(
                f"Reference resolver for '{typename}' failed at index {index} (key: {key})"
            )
            return EntityError.resolver_failure(index, typename, error)

        if value is None or value is NOT_FOUND:
            return None
        return ResolvedEntity(typename, value)

    async def _invoke(self, resolver: Any, representation: Dict[str, Any], info: Any) -> Any:
        timeout = self.settings.resolver_timeout
        if timeout is None:
            return await self._call(resolver, representation, info)
        return await asyncio.wait_for(self._call(resolver, representation, info), timeout)

    async def _call(self, resolver: Any, representation: Dict[str, Any], info: Any) -> Any:
        # Plain functions run in the threadpool, as FastAPI does for sync endpoints
        if inspect.iscoroutinefunction(resolver):
            return await resolver(representation, info)
        result = await run_in_threadpool(resolver, representation, info)
        if inspect.isawaitable(result):
            return await result
        return result

    async def resolve_entities(self, _root: Any, info: GraphQLResolveInfo, representations: List[Any]) -> List[Any]:
        """GraphQL resolver for `_entities`"""
        results = await self.fetch_entities(representations, info)
        path = info.path.as_list()

        values = []
        for index, result in enumerate(results):
            if isinstance(result, EntityError):
                # graphql-core reports returned errors at their list position
                values.append(result.to_graphql_error(path=[*path, index]))
            elif isinstance(result, ResolvedEntity):
                values.append(tag_entity(result))
            else:
                values.append(None)
        return values
