"""
Entity Key Field Sets

Parses `_FieldSet` strings such as ``"id"``, ``"sku package"`` or
``"owner { id }"`` and checks representations against them.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from graphql import (
    FieldNode,
    GraphQLError,
    GraphQLObjectType,
    OperationDefinitionNode,
    get_named_type,
    is_abstract_type,
    is_leaf_type,
    is_list_type,
    is_non_null_type,
    parse,
)

from ..utils.errors import SchemaError


@dataclass(frozen=True)
class KeyField:
    """One selected field of a key, with nested selections for object fields"""

    name: str
    children: Tuple["KeyField", ...] = ()

    def print(self) -> str:
        if not self.children:
            return self.name
        return f"{self.name} {{ {' '.join(child.print() for child in self.children)} }}"

    def paths(self, prefix: str = "") -> List[str]:
        path = f"{prefix}{self.name}"
        if not self.children:
            return [path]
        return [p for child in self.children for p in child.paths(f"{path}.")]


@dataclass(frozen=True)
class KeyFieldSet:
    """A parsed `@key(fields: ...)` selection"""

    source: str
    fields: Tuple[KeyField, ...]

    @classmethod
    def parse(cls, source: str, type_name: Optional[str] = None) -> "KeyFieldSet":
        """Parse a field set string; raises SchemaError on anything but plain field selections"""
        if not isinstance(source, str) or not source.strip():
            raise SchemaError(f"Key on '{type_name}' must be a non-empty field set", type_name=type_name)

        try:
            document = parse(f"{{ {source} }}", no_location=True)
        except GraphQLError as error:
            raise SchemaError(
                f"Invalid key field set '{source}' on '{type_name}': {error.message}",
                type_name=type_name,
            ) from error

        operation = document.definitions[0]
        if (
            len(document.definitions) != 1
            or not isinstance(operation, OperationDefinitionNode)
            or operation.name is not None
            or operation.variable_definitions
            or operation.directives
        ):
            raise SchemaError(
                f"Invalid key field set '{source}' on '{type_name}': expected a single selection set",
                type_name=type_name,
            )
        return cls(source=source, fields=_convert_selections(operation.selection_set.selections, source, type_name))

    @property
    def normalized(self) -> str:
        """Canonical printed form used for comparison and SDL output"""
        return " ".join(key_field.print() for key_field in self.fields)

    @property
    def paths(self) -> frozenset:
        return frozenset(p for key_field in self.fields for p in key_field.paths())

    def validate_against(self, object_type: GraphQLObjectType, type_name: str) -> None:
        """Check every selected field exists on the type and has a usable shape"""
        _validate_fields(self.fields, object_type, type_name, self.source)

    def validate_exists(self, object_type: Any, type_name: str) -> None:
        """Looser check for @requires/@provides: selected fields only have to exist"""
        _check_exists(self.fields, object_type, type_name, self.source)

    def missing_fields(self, representation: Mapping[str, Any]) -> List[str]:
        """Dotted paths of key fields absent from a representation"""
        return _missing(self.fields, representation, "")

    def matches(self, representation: Mapping[str, Any]) -> bool:
        return not self.missing_fields(representation)

    def extract(self, value: Any) -> Dict[str, Any]:
        """Pull this key's fields out of a resolved entity value"""
        return _extract(self.fields, value)

    def __str__(self) -> str:
        return self.normalized


@dataclass(frozen=True)
class EntityDefinition:
    """An entity type and its declared keys, in declaration order"""

    name: str
    keys: Tuple[KeyFieldSet, ...]
    extension: bool = False

    def match_key(self, representation: Mapping[str, Any]) -> Optional[KeyFieldSet]:
        """First declared key the representation fully satisfies"""
        for key in self.keys:
            if key.matches(representation):
                return key
        return None

    def missing_fields(self, representation: Mapping[str, Any]) -> List[str]:
        """Missing fields of the closest key, for error reporting"""
        candidates = [key.missing_fields(representation) for key in self.keys]
        return min(candidates, key=len) if candidates else []

    def representation_of(self, value: Any, key_index: int = 0) -> Dict[str, Any]:
        """Build a representation referencing a resolved value of this entity"""
        key = self.keys[key_index]
        return {"__typename": self.name, **key.extract(value)}


def _convert_selections(selections: Sequence[Any], source: str, type_name: Optional[str]) -> Tuple[KeyField, ...]:
    fields = []
    seen = set()
    for selection in selections:
        if not isinstance(selection, FieldNode):
            raise SchemaError(f"Key '{source}' on '{type_name}' may not contain fragments", type_name=type_name)
        name = selection.name.value
        if selection.alias is not None:
            raise SchemaError(f"Key '{source}' on '{type_name}' may not use aliases", type_name=type_name, field_name=name)
        if selection.arguments:
            raise SchemaError(f"Key '{source}' on '{type_name}' may not pass arguments", type_name=type_name, field_name=name)
        if selection.directives:
            raise SchemaError(f"Key '{source}' on '{type_name}' may not use directives", type_name=type_name, field_name=name)
        if name in seen:
            raise SchemaError(f"Key '{source}' on '{type_name}' selects '{name}' twice", type_name=type_name, field_name=name)
        seen.add(name)

        children: Tuple[KeyField, ...] = ()
        if selection.selection_set is not None:
            children = _convert_selections(selection.selection_set.selections, source, type_name)
        fields.append(KeyField(name=name, children=children))
    return tuple(fields)


def _validate_fields(fields: Sequence[KeyField], object_type: Any, type_name: str, source: str) -> None:
    for key_field in fields:
        graphql_field = object_type.fields.get(key_field.name)
        if graphql_field is None:
            raise SchemaError(
                f"Key '{source}' references unknown field '{object_type.name}.{key_field.name}'",
                type_name=type_name,
                field_name=key_field.name,
            )
        if graphql_field.args:
            raise SchemaError(
                f"Key field '{object_type.name}.{key_field.name}' must not take arguments",
                type_name=type_name,
                field_name=key_field.name,
            )

        field_type = graphql_field.type
        if is_non_null_type(field_type):
            field_type = field_type.of_type
        if is_list_type(field_type):
            raise SchemaError(
                f"Key field '{object_type.name}.{key_field.name}' must not be a list",
                type_name=type_name,
                field_name=key_field.name,
            )

        named_type = get_named_type(field_type)
        if is_abstract_type(named_type):
            raise SchemaError(
                f"Key field '{object_type.name}.{key_field.name}' must not be an interface or union",
                type_name=type_name,
                field_name=key_field.name,
            )
        if is_leaf_type(named_type):
            if key_field.children:
                raise SchemaError(
                    f"Key field '{object_type.name}.{key_field.name}' is a leaf and cannot have a selection",
                    type_name=type_name,
                    field_name=key_field.name,
                )
        else:
            if not key_field.children:
                raise SchemaError(
                    f"Key field '{object_type.name}.{key_field.name}' of object type "
                    f"'{named_type.name}' needs a selection",
                    type_name=type_name,
                    field_name=key_field.name,
                )
            _validate_fields(key_field.children, named_type, type_name, source)


def _check_exists(fields: Sequence[KeyField], object_type: Any, type_name: str, source: str) -> None:
    for key_field in fields:
        graphql_field = getattr(object_type, "fields", {}).get(key_field.name)
        if graphql_field is None:
            raise SchemaError(
                f"Field set '{source}' references unknown field '{object_type.name}.{key_field.name}'",
                type_name=type_name,
                field_name=key_field.name,
            )
        if key_field.children:
            _check_exists(key_field.children, get_named_type(graphql_field.type), type_name, source)


def _missing(fields: Sequence[KeyField], value: Any, prefix: str) -> List[str]:
    missing = []
    for key_field in fields:
        path = f"{prefix}{key_field.name}"
        if not isinstance(value, Mapping) or key_field.name not in value:
            missing.append(path)
            continue
        if key_field.children:
            nested = value[key_field.name]
            if not isinstance(nested, Mapping):
                missing.extend(key_field.paths(prefix))
            else:
                missing.extend(_missing(key_field.children, nested, f"{path}."))
    return missing


def _extract(fields: Sequence[KeyField], value: Any) -> Dict[str, Any]:
    extracted = {}
    for key_field in fields:
        if isinstance(value, Mapping):
            nested = value.get(key_field.name)
        else:
            nested = getattr(value, key_field.name, None)
        if key_field.children and nested is not None:
            nested = _extract(key_field.children, nested)
        extracted[key_field.name] = nested
    return extracted
