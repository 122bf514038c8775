"""
Pytest configuration and shared fixtures for subgraph tests.
"""

import pytest

from subgraph.core.config import Settings
from subgraph.federation.registry import NOT_FOUND, ReferenceResolverRegistry
from subgraph.federation.schema import augment


USERS_SDL = """
type User @key(fields: "id") {
  id: ID!
  username: String!
  organization: Organization
}

type Organization {
  id: ID!
  name: String
}

type Product @key(fields: "upc") @key(fields: "sku package") {
  upc: String!
  sku: String!
  package: String!
  name: String
}

type Query {
  me: User
}
"""

ENTITIES_QUERY = """
query ($representations: [_Any!]!) {
  _entities(representations: $representations) {
    __typename
    ... on User {
      id
      username
    }
    ... on Product {
      upc
      name
    }
  }
}
"""


@pytest.fixture
def settings():
    """Settings isolated from the environment defaults that matter here."""
    return Settings(environment="test", allow_resolver_override=False)


@pytest.fixture
def users_data():
    """Backing store for the User reference resolver."""
    return {
        "5": {"id": "5", "username": "@ava"},
        "7": {"id": "7", "username": "@ben"},
        "9": {"id": "9", "username": "@cy"},
    }


@pytest.fixture
def registry(users_data):
    """Registry with a User resolver; Product deliberately has none."""
    registry = ReferenceResolverRegistry()

    @registry.reference_resolver("User")
    def resolve_user(representation, info):
        return users_data.get(representation["id"], NOT_FOUND)

    return registry


@pytest.fixture
def subgraph(registry, settings):
    """Augmented users subgraph."""
    return augment(USERS_SDL, registry=registry, settings=settings)


@pytest.fixture
def users_sdl():
    return USERS_SDL


@pytest.fixture
def entities_query():
    return ENTITIES_QUERY
