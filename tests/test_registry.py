"""
Tests for the reference resolver registry.
"""

import pytest

from subgraph.federation.registry import NOT_FOUND, ReferenceResolverRegistry
from subgraph.federation.schema import augment
from subgraph.core.config import Settings
from subgraph.utils.errors import DuplicateResolverError, ErrorCode, SchemaError


def resolve_one(representation, info):
    return {"id": representation["id"]}


def resolve_two(representation, info):
    return NOT_FOUND


class TestRegistration:
    """Test suite for register/lookup."""

    def test_register_and_lookup(self):
        registry = ReferenceResolverRegistry()

        registry.register("User", resolve_one)

        assert registry.lookup("User") is resolve_one
        assert "User" in registry
        assert len(registry) == 1
        assert registry.type_names() == ["User"]

    def test_lookup_absent_type(self):
        registry = ReferenceResolverRegistry()

        assert registry.lookup("Widget") is None
        assert "Widget" not in registry

    def test_decorator_returns_function(self):
        registry = ReferenceResolverRegistry()

        @registry.reference_resolver("User")
        def resolve_user(representation, info):
            return None

        assert registry.lookup("User") is resolve_user

    def test_rejects_non_callable(self):
        registry = ReferenceResolverRegistry()

        with pytest.raises(SchemaError, match="not callable"):
            registry.register("User", "resolve_user")


class TestDuplicateRegistration:
    """Test suite for the duplicate registration policy."""

    def test_distinct_duplicate_rejected_by_default(self):
        registry = ReferenceResolverRegistry()
        registry.register("User", resolve_one)

        with pytest.raises(DuplicateResolverError) as exc_info:
            registry.register("User", resolve_two)

        assert exc_info.value.code is ErrorCode.DUPLICATE_RESOLVER
        assert exc_info.value.type_name == "User"
        assert registry.lookup("User") is resolve_one

    def test_same_resolver_twice_is_a_no_op(self):
        registry = ReferenceResolverRegistry()

        registry.register("User", resolve_one)
        registry.register("User", resolve_one)

        assert registry.lookup("User") is resolve_one

    def test_override_when_allowed(self):
        registry = ReferenceResolverRegistry(allow_override=True)

        registry.register("User", resolve_one)
        registry.register("User", resolve_two)

        assert registry.lookup("User") is resolve_two

    def test_default_registry_follows_settings(self, users_sdl):
        subgraph = augment(users_sdl, settings=Settings(allow_resolver_override=True))

        assert subgraph.registry.allow_override is True
        assert subgraph.registry.frozen


class TestFreeze:
    """Test suite for freezing the registry once the schema is built."""

    def test_register_after_freeze_rejected(self):
        registry = ReferenceResolverRegistry()
        registry.freeze()

        with pytest.raises(SchemaError, match="already been built"):
            registry.register("User", resolve_one)

    def test_lookup_after_freeze(self):
        registry = ReferenceResolverRegistry()
        registry.register("User", resolve_one)
        registry.freeze()

        assert registry.lookup("User") is resolve_one

    def test_not_found_marker_is_singleton_and_falsy(self):
        assert NOT_FOUND is type(NOT_FOUND)()
        assert not NOT_FOUND
        assert repr(NOT_FOUND) == "NOT_FOUND"
