"""
HTTP endpoint tests for the subgraph FastAPI app.
"""

import pytest
from fastapi.testclient import TestClient

from subgraph.core.config import Settings
from subgraph.dataloaders import loader_reference_resolver
from subgraph.federation.registry import ReferenceResolverRegistry
from subgraph.federation.schema import augment
from subgraph.server import create_subgraph_app


@pytest.fixture
def client(subgraph, settings):
    return TestClient(create_subgraph_app(subgraph, settings=settings))


class TestGraphQLEndpoint:
    """Test suite for POST /graphql."""

    def test_entities_with_per_position_error(self, client, entities_query):
        # Arrange
        payload = {
            "query": entities_query,
            "variables": {"representations": [
                {"__typename": "User", "id": "5"},
                {"__typename": "Product", "upc": "1"},
            ]},
        }

        # Act
        response = client.post("/graphql", json=payload)

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {"_entities": [{"__typename": "User", "id": "5", "username": "@ava"}, None]}
        assert len(body["errors"]) == 1
        assert body["errors"][0]["path"] == ["_entities", 1]
        assert body["errors"][0]["extensions"]["code"] == "UNRESOLVABLE_TYPE"
        assert "debug" not in body["errors"][0]["extensions"]

    def test_service_sdl(self, client, subgraph):
        response = client.post("/graphql", json={"query": "{ _service { sdl } }"})

        assert response.status_code == 200
        assert response.json() == {"data": {"_service": {"sdl": subgraph.sdl}}}

    def test_operation_name(self, client):
        payload = {
            "query": "query A { _service { sdl } } query B { __typename }",
            "operationName": "B",
        }

        response = client.post("/graphql", json=payload)

        assert response.json()["data"] == {"__typename": "Query"}

    def test_syntax_error_is_bad_request(self, client):
        response = client.post("/graphql", json={"query": "{ _entities("})

        assert response.status_code == 400
        body = response.json()
        assert body["data"] is None
        assert body["errors"][0]["message"].startswith("Syntax Error")

    def test_missing_query_rejected(self, client):
        response = client.post("/graphql", json={"variables": {}})

        assert response.status_code == 422

    def test_request_id_echoed(self, client):
        response = client.post(
            "/graphql",
            json={"query": "{ __typename }"},
            headers={"X-Request-ID": "req-123"},
        )

        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Process-Time" in response.headers

    def test_request_id_generated(self, client):
        response = client.get("/health")

        assert response.headers["X-Request-ID"]

    def test_debug_extension(self, users_sdl):
        # Arrange
        settings = Settings(environment="test", debug=True)
        registry = ReferenceResolverRegistry()

        @registry.reference_resolver("User")
        def resolve_user(representation, info):
            raise LookupError("users table locked")

        client = TestClient(create_subgraph_app(augment(users_sdl, registry=registry, settings=settings), settings))

        # Act
        response = client.post("/graphql", json={
            "query": "query ($r: [_Any!]!) { _entities(representations: $r) { __typename } }",
            "variables": {"r": [{"__typename": "User", "id": "5"}]},
        })

        # Assert
        error = response.json()["errors"][0]
        assert error["extensions"]["code"] == "RESOLVER_FAILURE"
        assert error["extensions"]["debug"] == {"exception": "LookupError", "message": "users table locked"}

    def test_default_context_provides_loaders(self, users_sdl, settings, users_data, entities_query):
        registry = ReferenceResolverRegistry()
        registry.register("User", loader_reference_resolver("user"))
        subgraph = augment(users_sdl, registry=registry, settings=settings)

        async def load_users(keys):
            return [users_data.get(key) for key in keys]

        client = TestClient(create_subgraph_app(subgraph, settings, loader_batch_fns={"user": load_users}))

        response = client.post("/graphql", json={
            "query": entities_query,
            "variables": {"representations": [{"__typename": "User", "id": "9"}]},
        })

        assert response.json() == {"data": {"_entities": [{"__typename": "User", "id": "9", "username": "@cy"}]}}

    def test_custom_context_getter(self, users_sdl, settings):
        registry = ReferenceResolverRegistry()

        @registry.reference_resolver("User")
        def resolve_user(representation, info):
            return {"id": representation["id"], "username": info.context["tenant"]}

        subgraph = augment(users_sdl, registry=registry, settings=settings)

        async def context_getter(request):
            return {"tenant": request.headers["X-Tenant"]}

        client = TestClient(create_subgraph_app(subgraph, settings, context_getter=context_getter))

        response = client.post(
            "/graphql",
            json={
                "query": "query ($r: [_Any!]!) { _entities(representations: $r) { ... on User { username } } }",
                "variables": {"r": [{"__typename": "User", "id": "1"}]},
            },
            headers={"X-Tenant": "acme"},
        )

        assert response.json()["data"] == {"_entities": [{"username": "acme"}]}


class TestAuxiliaryEndpoints:
    """Test suite for health and SDL endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "service": "subgraph",
            "version": "1.0.0",
            "environment": "test",
            "entities": ["User", "Product"],
        }

    def test_sdl_endpoint_hidden_outside_development(self, client):
        response = client.get("/graphql/sdl")

        assert response.status_code == 404

    def test_sdl_endpoint_in_development(self, subgraph):
        client = TestClient(create_subgraph_app(subgraph, Settings(environment="development")))

        response = client.get("/graphql/sdl")

        assert response.status_code == 200
        assert response.json() == {"sdl": subgraph.sdl}
