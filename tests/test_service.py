"""
Tests for the _service SDL and its round trip through composition.
"""

import pytest
from graphql import build_ast_schema, parse

from subgraph.federation.composition import compose
from subgraph.federation.schema import augment


class TestServiceSDL:
    """Test suite for the subgraph SDL snapshot."""

    @pytest.mark.asyncio
    async def test_service_field_returns_sdl(self, subgraph):
        result = await subgraph.execute("{ _service { sdl } }")

        assert result.errors is None
        assert result.data["_service"]["sdl"] == subgraph.get_sdl()

    def test_sdl_keeps_directive_applications(self, subgraph):
        sdl = subgraph.sdl

        assert 'type User @key(fields: "id") {' in sdl
        assert 'type Product @key(fields: "upc") @key(fields: "sku package") {' in sdl

    def test_sdl_includes_federation_definitions(self, subgraph):
        sdl = subgraph.sdl

        assert "scalar _Any" in sdl
        assert "scalar _FieldSet" in sdl
        assert "directive @key(fields: _FieldSet!) repeatable on OBJECT | INTERFACE" in sdl
        assert "union _Entity = User | Product" in sdl
        assert "_entities(representations: [_Any!]!): [_Entity]!" in sdl
        assert "_service: _Service!" in sdl

    def test_sdl_is_deterministic(self, users_sdl, settings):
        first = augment(users_sdl, keys={"User": ["username"]}, settings=settings)
        second = augment(users_sdl, keys={"User": ["username"]}, settings=settings)

        assert first.sdl == second.sdl
        assert first.sdl is first.sdl

    def test_sdl_builds_back_into_a_schema(self, subgraph):
        rebuilt = build_ast_schema(parse(subgraph.sdl))

        assert [member.name for member in rebuilt.type_map["_Entity"].types] == ["User", "Product"]

    def test_extension_marker_in_sdl(self, settings):
        sdl = """
        extend type User @key(fields: "id") {
          id: ID! @external
          reviews: [String]
        }
        """

        subgraph = augment(sdl, settings=settings)

        assert 'type User @key(fields: "id") @extends {' in subgraph.sdl
        assert "id: ID! @external" in subgraph.sdl


class TestRoundTrip:
    """Composing a single subgraph reproduces its entity declarations."""

    def test_single_subgraph_round_trip(self, users_sdl, settings):
        subgraph = augment(users_sdl, keys={"User": ["organization { id }"]}, settings=settings)

        supergraph = compose({"users": subgraph.sdl})

        assert supergraph.entity_keys() == {
            name: [key.normalized for key in entity.keys] for name, entity in subgraph.entities.items()
        }
        assert supergraph.entity_keys()["User"] == ["id", "organization { id }"]

    def test_federation_fields_not_composed(self, subgraph):
        supergraph = compose({"users": subgraph.sdl})

        assert "_entities" not in supergraph.types["Query"].fields
        assert "_Service" not in supergraph.types
        assert "me" in supergraph.types["Query"].fields
