"""
Supergraph Composition

Reference composer for subgraph SDLs as served by `_service { sdl }`. Checks
that entity keys agree across subgraphs, merges field sets additively and
records which subgraph(s) resolve each field.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from graphql import (
    ArgumentNode,
    DirectiveNode,
    DocumentNode,
    FieldDefinitionNode,
    GraphQLError,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    NamedTypeNode,
    NameNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    SchemaDefinitionNode,
    StringValueNode,
    TypeDefinitionNode,
    parse,
    print_ast,
)
from loguru import logger

from ..utils.errors import CompositionError, SchemaError
from .directives import (
    ENTITIES_FIELD,
    ENTITY_UNION,
    EXTENDS_DIRECTIVE,
    EXTERNAL_DIRECTIVE,
    FEDERATION_TYPE_DEFS,
    KEY_DIRECTIVE,
    SERVICE_FIELD,
    directive_field_sets,
    has_directive,
    key_directive,
)
from .keys import KeyFieldSet

ORIGIN_DIRECTIVE = "origin"

SUPERGRAPH_DIRECTIVES = """
directive @key(fields: String!) repeatable on OBJECT | INTERFACE

directive @origin(subgraph: String!) repeatable on FIELD_DEFINITION
"""

_FEDERATION_NAMES = set(FEDERATION_TYPE_DEFS) | {ENTITY_UNION}
_FEDERATION_FIELDS = {SERVICE_FIELD, ENTITIES_FIELD}
_COMPOSITE_NODES = (
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
)
_DEFAULT_ROOT_TYPES = ("Query", "Mutation", "Subscription")


@dataclass
class ComposedField:
    """A field of the supergraph and the subgraphs able to resolve it"""

    name: str
    type: str
    node: FieldDefinitionNode
    origins: List[str] = field(default_factory=list)


@dataclass
class ComposedType:
    """An object or interface type merged across subgraphs"""

    name: str
    kind: str
    owners: List[str] = field(default_factory=list)
    extenders: List[str] = field(default_factory=list)
    keys: Dict[str, List[str]] = field(default_factory=dict)
    fields: Dict[str, ComposedField] = field(default_factory=dict)
    external: Dict[str, List[str]] = field(default_factory=dict)
    interfaces: List[str] = field(default_factory=list)

    @property
    def is_entity(self) -> bool:
        return any(self.keys.values())

    @property
    def entity_keys(self) -> List[str]:
        """Keys declared by the owning subgraph"""
        for owner in self.owners:
            if self.keys.get(owner):
                return list(self.keys[owner])
        return []


@dataclass
class Supergraph:
    """Result of composing several subgraphs"""

    subgraphs: List[str]
    types: Dict[str, ComposedType]
    definitions: Dict[str, Any]

    def entity_keys(self) -> Dict[str, List[str]]:
        return {name: composed.entity_keys for name, composed in self.types.items() if composed.is_entity}

    def field_origins(self, type_name: str) -> Dict[str, List[str]]:
        composed = self.types[type_name]
        return {name: list(composed_field.origins) for name, composed_field in composed.fields.items()}

    @property
    def sdl(self) -> str:
        definitions: List[Any] = list(parse(SUPERGRAPH_DIRECTIVES, no_location=True).definitions)
        for composed in self.types.values():
            fields = tuple(_annotate_field(composed_field) for composed_field in composed.fields.values())
            node_class = ObjectTypeDefinitionNode if composed.kind == "object" else InterfaceTypeDefinitionNode
            definitions.append(
                node_class(
                    name=NameNode(value=composed.name),
                    description=None,
                    interfaces=tuple(NamedTypeNode(name=NameNode(value=name)) for name in composed.interfaces),
                    directives=tuple(key_directive(fields) for fields in composed.entity_keys),
                    fields=fields,
                )
            )
        definitions.extend(self.definitions.values())
        return print_ast(DocumentNode(definitions=tuple(definitions)))


def compose(subgraphs: Mapping[str, str]) -> Supergraph:
    """
    Compose subgraph SDLs into a supergraph.

    Raises:
        CompositionError: listing every inconsistency found
    """
    errors: List[str] = []
    types: Dict[str, ComposedType] = {}
    definitions: Dict[str, Any] = {}
    definition_sources: Dict[str, str] = {}

    for subgraph_name, sdl in subgraphs.items():
        try:
            document = parse(sdl, no_location=True)
        except GraphQLError as error:
            errors.append(f"[{subgraph_name}] invalid SDL: {error.message}")
            continue

        roots = _root_type_names(document)
        for definition in document.definitions:
            name_node = getattr(definition, "name", None)
            if name_node is None or name_node.value in _FEDERATION_NAMES:
                continue
            name = roots.get(name_node.value, name_node.value)

            if isinstance(definition, _COMPOSITE_NODES):
                _merge_composite(types, subgraph_name, definition, errors, name, name_node.value in roots)
            elif isinstance(definition, TypeDefinitionNode):
                printed = print_ast(definition)
                if name in definitions and print_ast(definitions[name]) != printed:
                    errors.append(
                        f"Type '{name}' is defined differently in "
                        f"'{definition_sources[name]}' and '{subgraph_name}'"
                    )
                else:
                    definitions.setdefault(name, definition)
                    definition_sources.setdefault(name, subgraph_name)

    for composed in types.values():
        _check_keys(composed, errors)
        _check_external(composed, errors)

    if errors:
        raise CompositionError(errors)

    logger.info(f"Composed {len(subgraphs)} subgraph(s) into {len(types)} composite type(s)")
    return Supergraph(subgraphs=list(subgraphs), types=types, definitions=definitions)


def _merge_composite(
    types: Dict[str, ComposedType],
    subgraph_name: str,
    node: Any,
    errors: List[str],
    name: str,
    is_root: bool,
) -> None:
    kind = "interface" if isinstance(node, (InterfaceTypeDefinitionNode, InterfaceTypeExtensionNode)) else "object"
    composed = types.setdefault(name, ComposedType(name=name, kind=kind))
    if composed.kind != kind:
        errors.append(f"Type '{name}' is an {composed.kind} in one subgraph and an {kind} in '{subgraph_name}'")
        return

    is_extension = isinstance(node, (ObjectTypeExtensionNode, InterfaceTypeExtensionNode)) or has_directive(
        node, EXTENDS_DIRECTIVE
    )
    if is_root:
        is_extension = False
    group = composed.extenders if is_extension else composed.owners
    if subgraph_name not in group:
        group.append(subgraph_name)

    for interface in node.interfaces or ():
        if interface.name.value not in composed.interfaces:
            composed.interfaces.append(interface.name.value)

    keys = composed.keys.setdefault(subgraph_name, [])
    for fields in directive_field_sets(node, KEY_DIRECTIVE):
        try:
            normalized = KeyFieldSet.parse(fields, name).normalized
        except SchemaError as error:
            errors.append(f"[{subgraph_name}] {error.message}")
            continue
        if normalized not in keys:
            keys.append(normalized)

    for field_node in node.fields or ():
        field_name = field_node.name.value
        if field_name in _FEDERATION_FIELDS:
            continue
        if has_directive(field_node, EXTERNAL_DIRECTIVE):
            composed.external.setdefault(field_name, []).append(subgraph_name)
            continue

        field_type = print_ast(field_node.type)
        existing = composed.fields.get(field_name)
        if existing is None:
            composed.fields[field_name] = ComposedField(
                name=field_name,
                type=field_type,
                node=_strip_directives(field_node),
                origins=[subgraph_name],
            )
        elif existing.type != field_type:
            errors.append(
                f"Field '{name}.{field_name}' has type '{existing.type}' in "
                f"'{existing.origins[0]}' but '{field_type}' in '{subgraph_name}'"
            )
        elif subgraph_name not in existing.origins:
            existing.origins.append(subgraph_name)


def _check_keys(composed: ComposedType, errors: List[str]) -> None:
    if not composed.is_entity:
        return
    if not composed.owners:
        errors.append(
            f"Entity '{composed.name}' is extended by {', '.join(composed.extenders)} "
            f"but no subgraph defines it"
        )
        return

    owner_keys: Optional[List[str]] = None
    owner_name = None
    for owner in composed.owners:
        keys = composed.keys.get(owner) or []
        if owner_keys is None:
            owner_keys, owner_name = keys, owner
        elif set(keys) != set(owner_keys):
            errors.append(
                f"Entity '{composed.name}' declares keys [{', '.join(owner_keys)}] in '{owner_name}' "
                f"but [{', '.join(keys)}] in '{owner}'"
            )

    for extender in composed.extenders:
        for key in composed.keys.get(extender) or []:
            if key not in (owner_keys or []):
                errors.append(
                    f"Entity '{composed.name}' is extended in '{extender}' with key '{key}', "
                    f"which its owner '{owner_name}' does not declare"
                )


def _check_external(composed: ComposedType, errors: List[str]) -> None:
    for field_name, subgraph_names in composed.external.items():
        if field_name not in composed.fields:
            errors.append(
                f"Field '{composed.name}.{field_name}' is @external in {', '.join(subgraph_names)} "
                f"but no subgraph resolves it"
            )


def _strip_directives(node: FieldDefinitionNode) -> FieldDefinitionNode:
    return FieldDefinitionNode(
        name=node.name,
        description=node.description,
        arguments=tuple(node.arguments or ()),
        type=node.type,
        directives=(),
    )


def _annotate_field(composed_field: ComposedField) -> FieldDefinitionNode:
    node = composed_field.node
    return FieldDefinitionNode(
        name=node.name,
        description=node.description,
        arguments=tuple(node.arguments or ()),
        type=node.type,
        directives=tuple(
            DirectiveNode(
                name=NameNode(value=ORIGIN_DIRECTIVE),
                arguments=(
                    ArgumentNode(name=NameNode(value="subgraph"), value=StringValueNode(value=origin)),
                ),
            )
            for origin in composed_field.origins
        ),
    )


def _root_type_names(document: DocumentNode) -> Dict[str, str]:
    """Root operation types of a subgraph, mapped to their conventional names"""
    for definition in document.definitions:
        if isinstance(definition, SchemaDefinitionNode):
            return {
                operation_type.type.name.value: operation_type.operation.value.capitalize()
                for operation_type in definition.operation_types
            }
    return {name: name for name in _DEFAULT_ROOT_TYPES}
