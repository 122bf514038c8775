"""
DataLoaders for batching reference resolution
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional

from aiodataloader import DataLoader
from loguru import logger

from ..federation.registry import NOT_FOUND

BatchLoadFn = Callable[[List[Any]], Awaitable[List[Any]]]


class ReferenceDataLoader(DataLoader):
    """
    DataLoader that batches the key lookups of one entity type.

    Representations resolved in the same _entities call share a tick, so
    their lookups arrive here as one batch.
    """

    def __init__(self, batch_load_fn: BatchLoadFn, name: str = "reference", **kwargs: Any):
        super().__init__(**kwargs)
        self._batch = batch_load_fn
        self.name = name

    async def batch_load_fn(self, keys: List[Any]) -> List[Any]:
        """Batch load entities by key"""
        values = await self._batch(keys)
        if len(values) != len(keys):
            raise ValueError(
                f"Loader '{self.name}' returned {len(values)} values for {len(keys)} keys"
            )
        logger.debug(f"Loader '{self.name}' resolved {len(keys)} keys")
        return values


def create_reference_loaders(batch_fns: Dict[str, BatchLoadFn]) -> Dict[str, ReferenceDataLoader]:
    """Create a fresh set of loaders; call once per request"""
    return {name: ReferenceDataLoader(fn, name=name) for name, fn in batch_fns.items()}


def loader_reference_resolver(
    loader_name: str,
    key_field: str = "id",
    cast: Optional[Callable[[Any], Any]] = None,
):
    """
    Build a reference resolver that loads through `info.context["loaders"]`.

    A missing entity (the loader yields None) is reported as NOT_FOUND.
    """

    async def resolve_reference(representation: Dict[str, Any], info: Any) -> Any:
        loaders = info.context["loaders"]
        key = representation[key_field]
        if cast is not None:
            key = cast(key)
        value = await loaders[loader_name].load(key)
        return NOT_FOUND if value is None else value

    resolve_reference.__name__ = f"resolve_{loader_name}_reference"
    return resolve_reference
