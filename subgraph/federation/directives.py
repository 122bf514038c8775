"""
Federation Directives for GraphQL Schema
"""

from typing import Any, Dict, List, Optional

from graphql import (
    ArgumentNode,
    DirectiveNode,
    DocumentNode,
    GraphQLScalarType,
    NameNode,
    StringValueNode,
    ValueNode,
    parse,
    value_from_ast_untyped,
)


KEY_DIRECTIVE = "key"
EXTENDS_DIRECTIVE = "extends"
EXTERNAL_DIRECTIVE = "external"
REQUIRES_DIRECTIVE = "requires"
PROVIDES_DIRECTIVE = "provides"

ANY_SCALAR = "_Any"
FIELD_SET_SCALAR = "_FieldSet"
SERVICE_TYPE = "_Service"
ENTITY_UNION = "_Entity"
SERVICE_FIELD = "_service"
ENTITIES_FIELD = "_entities"


# Definitions added to every subgraph document, keyed by name so that
# definitions the application already wrote are not duplicated.
FEDERATION_TYPE_DEFS: Dict[str, str] = {
    ANY_SCALAR: "scalar _Any",
    FIELD_SET_SCALAR: "scalar _FieldSet",
    KEY_DIRECTIVE: "directive @key(fields: _FieldSet!) repeatable on OBJECT | INTERFACE",
    EXTENDS_DIRECTIVE: "directive @extends on OBJECT | INTERFACE",
    EXTERNAL_DIRECTIVE: "directive @external on FIELD_DEFINITION",
    REQUIRES_DIRECTIVE: "directive @requires(fields: _FieldSet!) on FIELD_DEFINITION",
    PROVIDES_DIRECTIVE: "directive @provides(fields: _FieldSet!) on FIELD_DEFINITION",
    SERVICE_TYPE: "type _Service {\n  sdl: String!\n}",
}


def federation_definitions(skip: Optional[set] = None) -> List[Any]:
    """Parsed federation definitions, leaving out names in `skip`"""
    skip = skip or set()
    source = "\n\n".join(sdl for name, sdl in FEDERATION_TYPE_DEFS.items() if name not in skip)
    if not source:
        return []
    document: DocumentNode = parse(source, no_location=True)
    return list(document.definitions)


def key_directive(fields: str) -> DirectiveNode:
    """Build an `@key(fields: "...")` application node"""
    return DirectiveNode(
        name=NameNode(value=KEY_DIRECTIVE),
        arguments=(
            ArgumentNode(
                name=NameNode(value="fields"),
                value=StringValueNode(value=fields),
            ),
        ),
    )


def extends_directive() -> DirectiveNode:
    return DirectiveNode(name=NameNode(value=EXTENDS_DIRECTIVE), arguments=())


def has_directive(node: Any, name: str) -> bool:
    return any(directive.name.value == name for directive in node.directives or ())


def directive_field_sets(node: Any, name: str) -> List[str]:
    """`fields:` argument values of every application of a directive on a node"""
    values = []
    for directive in node.directives or ():
        if directive.name.value != name:
            continue
        for argument in directive.arguments or ():
            if argument.name.value == "fields" and isinstance(argument.value, StringValueNode):
                values.append(argument.value.value)
    return values


# _Any scalar: arbitrary JSON-like values, validated at resolution time only
def _serialize_any(value: Any) -> Any:
    return value


def _parse_any_value(value: Any) -> Any:
    return value


def _parse_any_literal(value_node: ValueNode, variables: Optional[Dict[str, Any]] = None) -> Any:
    return value_from_ast_untyped(value_node, variables)


def attach_any_scalar(scalar: GraphQLScalarType) -> None:
    """Install _Any behaviour on the scalar built from SDL"""
    scalar.serialize = _serialize_any  # type: ignore[assignment]
    scalar.parse_value = _parse_any_value  # type: ignore[assignment]
    scalar.parse_literal = _parse_any_literal  # type: ignore[assignment]
    scalar.description = "Entity representation: __typename plus key fields"
