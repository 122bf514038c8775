"""
Subgraph HTTP Server (FastAPI)
"""

import inspect
import time
import uuid
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .core.config import Settings, get_settings
from .dataloaders import create_reference_loaders
from .dataloaders.reference_loaders import BatchLoadFn
from .federation.schema import AugmentedSchema
from .utils.errors import ErrorHandler

ContextGetter = Callable[[Request], Any]


class GraphQLRequest(BaseModel):
    """GraphQL-over-HTTP request body"""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    variables: Optional[Dict[str, Any]] = None
    operation_name: Optional[str] = Field(default=None, alias="operationName")


def create_subgraph_app(
    subgraph: AugmentedSchema,
    settings: Optional[Settings] = None,
    context_getter: Optional[ContextGetter] = None,
    loader_batch_fns: Optional[Dict[str, BatchLoadFn]] = None,
) -> FastAPI:
    """Create FastAPI app serving a subgraph at /graphql"""
    settings = settings or get_settings()
    error_handler = ErrorHandler(debug=settings.debug)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )

    async def build_context(request: Request) -> Any:
        if context_getter is not None:
            context = context_getter(request)
            if inspect.isawaitable(context):
                context = await context
            return context
        return {
            "request": request,
            "loaders": create_reference_loaders(loader_batch_fns or {}),
        }

    @app.middleware("http")
    async def process_request_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        with logger.contextualize(request_id=request_id):
            response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.post("/graphql")
    async def graphql_endpoint(payload: GraphQLRequest, request: Request):
        """Execute a GraphQL operation"""
        context = await build_context(request)
        result = await subgraph.execute(
            payload.query,
            variables=payload.variables,
            operation_name=payload.operation_name,
            context_value=context,
        )

        body: Dict[str, Any] = {"data": result.data}
        if result.errors:
            body["errors"] = error_handler.format_errors(result.errors)

        # No data means the operation never executed (syntax or validation error)
        status_code = 400 if result.data is None and result.errors else 200
        return JSONResponse(body, status_code=status_code)

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "entities": subgraph.entity_types,
        }

    if settings.is_development:
        @app.get("/graphql/sdl")
        async def get_sdl():
            """Subgraph SDL, same as `_service { sdl }`"""
            return {"sdl": subgraph.sdl}

    logger.info(f"Subgraph app '{settings.app_name}' created for {settings.environment} environment")
    return app
