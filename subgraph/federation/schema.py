"""
Subgraph Schema Augmenter

Builds a federation subgraph schema from SDL type definitions: entity key
directives are injected, the `_Any` scalar, `_Service` type, `_Entity` union
and the `_service` / `_entities` root fields are added, and application
resolvers plus reference resolvers are wired in.
"""

from copy import copy
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union, cast

from graphql import (
    DirectiveDefinitionNode,
    DocumentNode,
    ExecutionResult,
    GraphQLError,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLUnionType,
    InterfaceTypeDefinitionNode,
    InterfaceTypeExtensionNode,
    NamedTypeNode,
    NameNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    OperationType,
    SchemaDefinitionNode,
    TypeDefinitionNode,
    UnionTypeDefinitionNode,
    build_ast_schema,
    graphql,
    is_abstract_type,
    is_object_type,
    parse,
    validate_schema,
)
from loguru import logger

from ..core.config import Settings, get_settings
from ..utils.errors import SchemaError
from .directives import (
    ANY_SCALAR,
    ENTITIES_FIELD,
    ENTITY_UNION,
    EXTENDS_DIRECTIVE,
    FEDERATION_TYPE_DEFS,
    KEY_DIRECTIVE,
    PROVIDES_DIRECTIVE,
    REQUIRES_DIRECTIVE,
    SERVICE_FIELD,
    attach_any_scalar,
    directive_field_sets,
    extends_directive,
    federation_definitions,
    has_directive,
    key_directive,
)
from .entities import EntityFetchService, resolve_entity_type
from .keys import EntityDefinition, KeyFieldSet
from .registry import ReferenceResolverRegistry
from .service import SchemaIntrospectionService

TypeDefs = Union[str, DocumentNode, Sequence[Union[str, DocumentNode]]]
ResolverMap = Mapping[str, Mapping[str, Callable[..., Any]]]
KeyDeclarations = Mapping[str, Sequence[str]]

_OBJECT_NODES = (ObjectTypeDefinitionNode, ObjectTypeExtensionNode)
_INTERFACE_NODES = (InterfaceTypeDefinitionNode, InterfaceTypeExtensionNode)


class AugmentedSchema:
    """A built subgraph: executable schema plus federation metadata"""

    def __init__(
        self,
        schema: GraphQLSchema,
        document: DocumentNode,
        entities: Dict[str, EntityDefinition],
        registry: ReferenceResolverRegistry,
        fetch_service: EntityFetchService,
        introspection: SchemaIntrospectionService,
        query_type_name: str,
    ):
        self.schema = schema
        self.document = document
        self.entities = entities
        self.registry = registry
        self.fetch_service = fetch_service
        self.introspection = introspection
        self.query_type_name = query_type_name

    @property
    def sdl(self) -> str:
        return self.introspection.get_sdl()

    def get_sdl(self) -> str:
        return self.introspection.get_sdl()

    @property
    def entity_types(self) -> List[str]:
        return list(self.entities)

    def entity(self, type_name: str) -> Optional[EntityDefinition]:
        return self.entities.get(type_name)

    async def fetch_entities(self, representations: Sequence[Any], info: Any = None) -> List[Any]:
        return await self.fetch_service.fetch_entities(representations, info)

    async def execute(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
        operation_name: Optional[str] = None,
        context_value: Any = None,
    ) -> ExecutionResult:
        """Execute a GraphQL operation against the subgraph"""
        return await graphql(
            self.schema,
            query,
            variable_values=variables,
            operation_name=operation_name,
            context_value=context_value,
        )


def augment(
    type_defs: TypeDefs,
    resolvers: Optional[ResolverMap] = None,
    keys: Optional[KeyDeclarations] = None,
    registry: Optional[ReferenceResolverRegistry] = None,
    settings: Optional[Settings] = None,
) -> AugmentedSchema:
    """
    Build a federation subgraph schema.

    Args:
        type_defs: SDL source(s) or parsed document(s)
        resolvers: {TypeName: {fieldName: resolver}}; "__resolve_type" and
            "__is_type_of" entries configure abstract/object type resolution
        keys: {TypeName: ["id", "owner { id }"]}, added to any @key
            directives already present in the SDL
        registry: reference resolvers for the entity types

    Raises:
        SchemaError: the type definitions, keys or resolvers are inconsistent
    """
    settings = settings or get_settings()
    if registry is None:
        registry = ReferenceResolverRegistry(allow_override=settings.allow_resolver_override)

    definitions = _collect_definitions(type_defs)
    query_type_name = _query_type_name(definitions)
    definitions, extended = _convert_orphan_extensions(definitions, query_type_name)

    entity_keys = _collect_entity_keys(definitions, keys or {})
    definitions = _inject_key_directives(definitions, entity_keys)

    document = _assemble_document(definitions, query_type_name, list(entity_keys))
    schema = _build(document)

    entities = {}
    for type_name, field_sets in entity_keys.items():
        object_type = schema.type_map[type_name]
        parsed = _parse_keys(type_name, field_sets)
        for key in parsed:
            key.validate_against(object_type, type_name)
        entities[type_name] = EntityDefinition(
            name=type_name,
            keys=tuple(parsed),
            extension=type_name in extended,
        )

    _validate_field_set_directives(definitions, schema)

    for type_name in registry.type_names():
        if type_name not in entities:
            raise SchemaError(
                f"Reference resolver registered for '{type_name}', which is not an entity type",
                type_name=type_name,
            )

    fetch_service = EntityFetchService(entities, registry, settings)
    introspection = SchemaIntrospectionService(document)

    attach_any_scalar(schema.type_map[ANY_SCALAR])
    query_type = cast(GraphQLObjectType, schema.type_map[query_type_name])
    query_type.fields[SERVICE_FIELD].resolve = introspection.resolve_service
    if entities:
        entity_union = cast(GraphQLUnionType, schema.type_map[ENTITY_UNION])
        entity_union.resolve_type = resolve_entity_type
        query_type.fields[ENTITIES_FIELD].resolve = fetch_service.resolve_entities

    _attach_resolvers(schema, resolvers or {})
    registry.freeze()

    logger.info(
        f"Built subgraph schema with {len(entities)} entity type(s): {', '.join(entities) or 'none'}"
    )
    return AugmentedSchema(
        schema=schema,
        document=document,
        entities=entities,
        registry=registry,
        fetch_service=fetch_service,
        introspection=introspection,
        query_type_name=query_type_name,
    )


build_subgraph_schema = augment


def _collect_definitions(type_defs: TypeDefs) -> List[Any]:
    sources: Iterable[Union[str, DocumentNode]]
    if isinstance(type_defs, (str, DocumentNode)):
        sources = [type_defs]
    else:
        sources = type_defs

    definitions: List[Any] = []
    for source in sources:
        if isinstance(source, str):
            try:
                source = parse(source, no_location=True)
            except GraphQLError as error:
                raise SchemaError(f"Invalid type definitions: {error.message}") from error
        definitions.extend(source.definitions)
    return definitions


def _query_type_name(definitions: Sequence[Any]) -> str:
    for definition in definitions:
        if isinstance(definition, SchemaDefinitionNode):
            for operation_type in definition.operation_types:
                if operation_type.operation == OperationType.QUERY:
                    return operation_type.type.name.value
    return "Query"


def _convert_orphan_extensions(definitions: Sequence[Any], query_type_name: str):
    """
    Turn `extend type X` into a definition when X is not defined locally.

    The converted type is marked with @extends so the SDL still tells the
    composer this subgraph does not own it. Root types are never marked.
    """
    defined = {d.name.value for d in definitions if isinstance(d, TypeDefinitionNode)}
    extended = set()
    converted = []

    for definition in definitions:
        name = getattr(getattr(definition, "name", None), "value", None)
        if isinstance(definition, (ObjectTypeDefinitionNode, InterfaceTypeDefinitionNode)):
            if has_directive(definition, EXTENDS_DIRECTIVE):
                extended.add(name)
            converted.append(definition)
            continue

        if isinstance(definition, (ObjectTypeExtensionNode, InterfaceTypeExtensionNode)) and name not in defined:
            directives = tuple(definition.directives or ())
            if name != query_type_name:
                extended.add(name)
                if not has_directive(definition, EXTENDS_DIRECTIVE):
                    directives = directives + (extends_directive(),)
            node_class = (
                ObjectTypeDefinitionNode
                if isinstance(definition, ObjectTypeExtensionNode)
                else InterfaceTypeDefinitionNode
            )
            converted.append(
                node_class(
                    name=definition.name,
                    description=None,
                    interfaces=tuple(definition.interfaces or ()),
                    directives=directives,
                    fields=tuple(definition.fields or ()),
                )
            )
            defined.add(name)
            continue

        converted.append(definition)

    return converted, extended


def _collect_entity_keys(definitions: Sequence[Any], declared: KeyDeclarations) -> Dict[str, List[str]]:
    """Key field sets per entity type: SDL @key directives first, then declarations"""
    entity_keys: Dict[str, List[str]] = {}
    object_names = set()

    for definition in definitions:
        name = getattr(getattr(definition, "name", None), "value", None)
        if isinstance(definition, _OBJECT_NODES):
            object_names.add(name)
            for fields in directive_field_sets(definition, KEY_DIRECTIVE):
                entity_keys.setdefault(name, []).append(fields)
        elif isinstance(definition, _INTERFACE_NODES) and directive_field_sets(definition, KEY_DIRECTIVE):
            raise SchemaError(f"Only object types can be entities, '{name}' is an interface", type_name=name)

    for type_name, field_sets in declared.items():
        if type_name not in object_names:
            raise SchemaError(
                f"Key declared for unknown object type '{type_name}'",
                type_name=type_name,
            )
        if isinstance(field_sets, str):
            field_sets = [field_sets]
        if not field_sets:
            raise SchemaError(f"No key field sets declared for '{type_name}'", type_name=type_name)

        existing = entity_keys.setdefault(type_name, [])
        existing_normalized = {KeyFieldSet.parse(fields, type_name).normalized for fields in existing}
        for fields in field_sets:
            normalized = KeyFieldSet.parse(fields, type_name).normalized
            if normalized in existing_normalized:
                continue
            existing.append(normalized)

    return entity_keys


def _inject_key_directives(definitions: Sequence[Any], entity_keys: Dict[str, List[str]]) -> List[Any]:
    """Add @key applications for declared keys not already written in the SDL"""
    pending = {name: list(field_sets) for name, field_sets in entity_keys.items()}
    for definition in definitions:
        if isinstance(definition, _OBJECT_NODES):
            for fields in directive_field_sets(definition, KEY_DIRECTIVE):
                if fields in pending.get(definition.name.value, []):
                    pending[definition.name.value].remove(fields)

    result = []
    for definition in definitions:
        name = getattr(getattr(definition, "name", None), "value", None)
        if isinstance(definition, ObjectTypeDefinitionNode) and pending.get(name):
            definition = copy(definition)
            definition.directives = tuple(definition.directives or ()) + tuple(
                key_directive(fields) for fields in pending.pop(name)
            )
        result.append(definition)

    # Types only present as extensions of a local definition get keys on the first extension
    for index, definition in enumerate(result):
        name = getattr(getattr(definition, "name", None), "value", None)
        if isinstance(definition, ObjectTypeExtensionNode) and pending.get(name):
            definition = copy(definition)
            definition.directives = tuple(definition.directives or ()) + tuple(
                key_directive(fields) for fields in pending.pop(name)
            )
            result[index] = definition

    return result


def _assemble_document(definitions: List[Any], query_type_name: str, entity_names: List[str]) -> DocumentNode:
    existing = set()
    for definition in definitions:
        if isinstance(definition, (TypeDefinitionNode, DirectiveDefinitionNode)):
            existing.add(definition.name.value)

    root_fields = f"{SERVICE_FIELD}: _Service!"
    if entity_names:
        root_fields += f"\n  {ENTITIES_FIELD}(representations: [_Any!]!): [{ENTITY_UNION}]!"
    federation_fields = parse(f"type {query_type_name} {{\n  {root_fields}\n}}", no_location=True).definitions[0].fields

    body = []
    query_found = False
    for definition in definitions:
        if isinstance(definition, ObjectTypeDefinitionNode) and definition.name.value == query_type_name:
            taken = {field.name.value for field in definition.fields or ()}
            clash = taken & {SERVICE_FIELD, ENTITIES_FIELD}
            if clash:
                raise SchemaError(
                    f"Root field '{sorted(clash)[0]}' is reserved for federation",
                    type_name=query_type_name,
                    field_name=sorted(clash)[0],
                )
            definition = copy(definition)
            definition.fields = tuple(definition.fields or ()) + tuple(federation_fields)
            query_found = True
        body.append(definition)

    if not query_found:
        body.append(
            ObjectTypeDefinitionNode(
                name=NameNode(value=query_type_name),
                description=None,
                interfaces=(),
                directives=(),
                fields=tuple(federation_fields),
            )
        )

    if entity_names:
        if ENTITY_UNION in existing:
            raise SchemaError(f"Type name '{ENTITY_UNION}' is reserved for federation", type_name=ENTITY_UNION)
        body.append(
            UnionTypeDefinitionNode(
                name=NameNode(value=ENTITY_UNION),
                description=None,
                directives=(),
                types=tuple(NamedTypeNode(name=NameNode(value=name)) for name in entity_names),
            )
        )

    preamble = federation_definitions(skip=existing & set(FEDERATION_TYPE_DEFS))
    return DocumentNode(definitions=tuple(preamble + body))


def _build(document: DocumentNode) -> GraphQLSchema:
    try:
        schema = build_ast_schema(document)
    except (GraphQLError, TypeError) as error:
        raise SchemaError(f"Invalid subgraph schema: {error}") from error

    errors = validate_schema(schema)
    if errors:
        raise SchemaError("Invalid subgraph schema: " + "; ".join(error.message for error in errors))
    return schema


def _parse_keys(type_name: str, field_sets: Sequence[str]) -> List[KeyFieldSet]:
    """Parse keys and reject ambiguous identity: duplicates or one key containing another"""
    parsed = [KeyFieldSet.parse(fields, type_name) for fields in field_sets]
    for i, first in enumerate(parsed):
        for second in parsed[i + 1:]:
            if first.paths == second.paths:
                raise SchemaError(f"Duplicate key '{second.normalized}' on '{type_name}'", type_name=type_name)
            if first.paths < second.paths or second.paths < first.paths:
                raise SchemaError(
                    f"Keys '{first.normalized}' and '{second.normalized}' on '{type_name}' overlap: "
                    f"one contains the other",
                    type_name=type_name,
                )
    return parsed


def _validate_field_set_directives(definitions: Sequence[Any], schema: GraphQLSchema) -> None:
    """@requires field sets refer to the parent type, @provides to the field's type"""
    for definition in definitions:
        if not isinstance(definition, _OBJECT_NODES):
            continue
        type_name = definition.name.value
        parent = schema.type_map[type_name]
        for field_node in definition.fields or ():
            for fields in directive_field_sets(field_node, REQUIRES_DIRECTIVE):
                KeyFieldSet.parse(fields, type_name).validate_exists(parent, type_name)
            for fields in directive_field_sets(field_node, PROVIDES_DIRECTIVE):
                returned = parent.fields[field_node.name.value].type
                while hasattr(returned, "of_type"):
                    returned = returned.of_type
                KeyFieldSet.parse(fields, type_name).validate_exists(returned, type_name)


def _attach_resolvers(schema: GraphQLSchema, resolvers: ResolverMap) -> None:
    for type_name, field_resolvers in resolvers.items():
        graphql_type = schema.type_map.get(type_name)
        if graphql_type is None:
            raise SchemaError(f"Resolvers given for unknown type '{type_name}'", type_name=type_name)

        for field_name, resolver in field_resolvers.items():
            if field_name == "__resolve_type":
                if not is_abstract_type(graphql_type):
                    raise SchemaError(
                        f"__resolve_type given for '{type_name}', which is not an interface or union",
                        type_name=type_name,
                    )
                graphql_type.resolve_type = resolver
            elif field_name == "__is_type_of":
                if not is_object_type(graphql_type):
                    raise SchemaError(f"__is_type_of given for non-object type '{type_name}'", type_name=type_name)
                graphql_type.is_type_of = resolver
            else:
                fields = getattr(graphql_type, "fields", None)
                if not is_object_type(graphql_type) or field_name not in fields:
                    raise SchemaError(
                        f"Resolver given for unknown field '{type_name}.{field_name}'",
                        type_name=type_name,
                        field_name=field_name,
                    )
                if field_name in (SERVICE_FIELD, ENTITIES_FIELD) and type_name == schema.query_type.name:
                    raise SchemaError(
                        f"Root field '{field_name}' is reserved for federation",
                        type_name=type_name,
                        field_name=field_name,
                    )
                fields[field_name].resolve = resolver
