"""
Federation Error Handling and Custom Exceptions
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from graphql import GraphQLError
from loguru import logger


class ErrorCode(Enum):
    """Error codes surfaced in GraphQL error extensions"""

    # Startup
    SCHEMA_ERROR = "SCHEMA_ERROR"
    DUPLICATE_RESOLVER = "DUPLICATE_RESOLVER"
    COMPOSITION_ERROR = "COMPOSITION_ERROR"

    # Entity resolution
    MALFORMED_REPRESENTATION = "MALFORMED_REPRESENTATION"
    KEY_MISMATCH = "KEY_MISMATCH"
    UNRESOLVABLE_TYPE = "UNRESOLVABLE_TYPE"
    RESOLVER_FAILURE = "RESOLVER_FAILURE"
    TOO_MANY_REPRESENTATIONS = "TOO_MANY_REPRESENTATIONS"

    # Transport
    BAD_REQUEST = "BAD_REQUEST"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class FederationError(Exception):
    """Base exception for subgraph federation errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        extensions: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.extensions = {"code": code.value, **(extensions or {})}

    def to_graphql_error(self, path: Optional[List[Union[str, int]]] = None) -> GraphQLError:
        """Convert to GraphQL error"""
        return GraphQLError(
            message=self.message,
            path=path,
            original_error=self,
            extensions=dict(self.extensions),
        )


class SchemaError(FederationError):
    """Raised while building a subgraph schema; the server must not start"""

    def __init__(
        self,
        message: str,
        type_name: Optional[str] = None,
        field_name: Optional[str] = None,
        code: ErrorCode = ErrorCode.SCHEMA_ERROR,
    ):
        extensions = {}
        if type_name:
            extensions["type_name"] = type_name
        if field_name:
            extensions["field_name"] = field_name

        super().__init__(message=message, code=code, extensions=extensions)
        self.type_name = type_name
        self.field_name = field_name


class DuplicateResolverError(SchemaError):
    """A second, different reference resolver was registered for a type"""

    def __init__(self, type_name: str):
        super().__init__(
            message=f"A reference resolver is already registered for entity type '{type_name}'",
            type_name=type_name,
            code=ErrorCode.DUPLICATE_RESOLVER,
        )


class CompositionError(SchemaError):
    """Subgraph SDLs could not be composed into a supergraph"""

    def __init__(self, errors: List[str]):
        super().__init__(
            message="Composition failed:\n" + "\n".join(f"  - {error}" for error in errors),
            code=ErrorCode.COMPOSITION_ERROR,
        )
        self.errors = errors
        self.extensions["errors"] = list(errors)


class EntityErrorKind(Enum):
    """Per-representation failure kinds for _entities"""

    MALFORMED_REPRESENTATION = ErrorCode.MALFORMED_REPRESENTATION
    KEY_MISMATCH = ErrorCode.KEY_MISMATCH
    UNRESOLVABLE_TYPE = ErrorCode.UNRESOLVABLE_TYPE
    RESOLVER_FAILURE = ErrorCode.RESOLVER_FAILURE


class EntityError(FederationError):
    """
    Failure to resolve a single representation.

    Non-fatal: it occupies the representation's position in the _entities
    result and the rest of the batch is still resolved.
    """

    def __init__(
        self,
        kind: EntityErrorKind,
        message: str,
        index: int,
        typename: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        extensions: Dict[str, Any] = {"index": index}
        if typename is not None:
            extensions["typename"] = typename
        if cause is not None:
            extensions["cause"] = type(cause).__name__

        super().__init__(message=message, code=kind.value, extensions=extensions)
        self.kind = kind
        self.index = index
        self.typename = typename
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @classmethod
    def malformed(cls, index: int, reason: str) -> "EntityError":
        return cls(
            EntityErrorKind.MALFORMED_REPRESENTATION,
            f"Malformed representation at index {index}: {reason}",
            index,
        )

    @classmethod
    def key_mismatch(cls, index: int, typename: str, missing: List[str]) -> "EntityError":
        return cls(
            EntityErrorKind.KEY_MISMATCH,
            f"Representation at index {index} does not match any key of '{typename}' "
            f"(missing: {', '.join(missing)})",
            index,
            typename=typename,
        )

    @classmethod
    def unresolvable(cls, index: int, typename: str, reason: str) -> "EntityError":
        return cls(
            EntityErrorKind.UNRESOLVABLE_TYPE,
            f"Cannot resolve '{typename}' at index {index}: {reason}",
            index,
            typename=typename,
        )

    @classmethod
    def resolver_failure(cls, index: int, typename: str, cause: BaseException) -> "EntityError":
        detail = str(cause) or type(cause).__name__
        return cls(
            EntityErrorKind.RESOLVER_FAILURE,
            f"Reference resolver for '{typename}' failed at index {index}: {detail}",
            index,
            typename=typename,
            cause=cause,
        )


class ErrorHandler:
    """GraphQL error formatter with logging"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def log_error(self, error: GraphQLError) -> None:
        """Log error with its original cause"""
        original = error.original_error
        if isinstance(original, FederationError):
            logger.bind(code=original.code.value, path=error.path).warning(
                f"Federation error: {original.code.value} - {original.message}"
            )
        elif original is not None:
            logger.opt(exception=original).error(f"Unexpected error: {original}")
        else:
            logger.bind(path=error.path).info(f"GraphQL error: {error.message}")

    def format_error(self, error: GraphQLError) -> Dict[str, Any]:
        """Format GraphQL error for response"""
        self.log_error(error)
        formatted = error.formatted

        original = error.original_error
        if self.debug and original is not None:
            cause = original.cause if isinstance(original, EntityError) else original
            if cause is not None:
                formatted["extensions"] = {
                    **(formatted.get("extensions") or {}),
                    "debug": {"exception": type(cause).__name__, "message": str(cause)},
                }

        return formatted

    def format_errors(self, errors: Optional[List[GraphQLError]]) -> List[Dict[str, Any]]:
        return [self.format_error(error) for error in errors or []]
