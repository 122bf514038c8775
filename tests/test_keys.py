"""
Tests for entity key field set parsing and representation matching.
"""

import pytest

from subgraph.federation.keys import EntityDefinition, KeyFieldSet
from subgraph.utils.errors import SchemaError


class TestKeyFieldSetParsing:
    """Test suite for _FieldSet parsing."""

    def test_single_field(self):
        key = KeyFieldSet.parse("id", "User")

        assert [field.name for field in key.fields] == ["id"]
        assert key.normalized == "id"

    def test_compound_key_keeps_order(self):
        key = KeyFieldSet.parse("sku   package", "Product")

        assert [field.name for field in key.fields] == ["sku", "package"]
        assert key.normalized == "sku package"

    def test_nested_selection(self):
        key = KeyFieldSet.parse("id organization { id }", "User")

        assert key.normalized == "id organization { id }"
        assert key.paths == frozenset({"id", "organization.id"})

    @pytest.mark.parametrize(
        "source",
        [
            "",
            "   ",
            "id {",
            "alias: id",
            "id(first: 1)",
            "... on User { id }",
            "id @skip(if: true)",
            "id id",
            "id } { username",
            "id } fragment F on User { id",
            "id } query Named { username",
        ],
    )
    def test_rejects_invalid_field_sets(self, source):
        with pytest.raises(SchemaError) as exc_info:
            KeyFieldSet.parse(source, "User")

        assert exc_info.value.type_name == "User"


class TestRepresentationMatching:
    """Test suite for matching representations against keys."""

    def test_missing_fields_reports_paths(self):
        key = KeyFieldSet.parse("id organization { id name }", "User")

        missing = key.missing_fields({"id": "1", "organization": {"id": "o1"}})

        assert missing == ["organization.name"]

    def test_non_object_nested_value_misses_all_children(self):
        key = KeyFieldSet.parse("organization { id name }", "User")

        assert key.missing_fields({"organization": "o1"}) == ["organization.id", "organization.name"]

    def test_null_key_value_counts_as_present(self):
        key = KeyFieldSet.parse("id", "User")

        assert key.matches({"__typename": "User", "id": None})

    def test_extra_fields_are_ignored(self):
        key = KeyFieldSet.parse("id", "User")

        assert key.matches({"__typename": "User", "id": "1", "username": "@ava"})

    def test_first_satisfied_key_wins(self):
        entity = EntityDefinition(
            name="Product",
            keys=(KeyFieldSet.parse("upc", "Product"), KeyFieldSet.parse("sku package", "Product")),
        )

        both = entity.match_key({"upc": "1", "sku": "s", "package": "p"})
        second_only = entity.match_key({"sku": "s", "package": "p", "upc_hint": "x"})

        assert both.normalized == "upc"
        assert second_only.normalized == "sku package"

    def test_partial_match_of_every_key_is_no_match(self):
        entity = EntityDefinition(
            name="Product",
            keys=(KeyFieldSet.parse("upc", "Product"), KeyFieldSet.parse("sku package", "Product")),
        )

        assert entity.match_key({"sku": "s"}) is None
        assert entity.missing_fields({"sku": "s"}) == ["upc"]


class TestRepresentationExtraction:
    """Test suite for building representations from resolved values."""

    def test_from_mapping(self):
        entity = EntityDefinition(name="User", keys=(KeyFieldSet.parse("id organization { id }", "User"),))

        representation = entity.representation_of(
            {"id": "5", "username": "@ava", "organization": {"id": "o1", "name": "Acme"}}
        )

        assert representation == {"__typename": "User", "id": "5", "organization": {"id": "o1"}}

    def test_from_object(self):
        class Product:
            upc = "123"
            sku = "s-1"
            package = "box"

        entity = EntityDefinition(
            name="Product",
            keys=(KeyFieldSet.parse("upc", "Product"), KeyFieldSet.parse("sku package", "Product")),
        )

        assert entity.representation_of(Product(), key_index=1) == {
            "__typename": "Product",
            "sku": "s-1",
            "package": "box",
        }
