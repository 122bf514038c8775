"""
DataLoader implementations for batched reference resolution
"""

from .reference_loaders import ReferenceDataLoader, create_reference_loaders, loader_reference_resolver

__all__ = [
    "ReferenceDataLoader",
    "create_reference_loaders",
    "loader_reference_resolver",
]
