import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from restcompose import (
    ComposeGateway,
    FieldSelectionRoute,
    OrchestratorConfig,
    RouteRegistration,
    current_context,
)

from .conftest import ROUTES, PostController, UserService


class RequestInfo:
    async def whoami(self, *args):
        context = current_context()
        return {
            "alias": context.metadata["alias"],
            "parent": context.metadata.get("parent_request_id"),
        }


def build_gateway(**config):
    return ComposeGateway(
        ROUTES + [RouteRegistration("/whoami", RequestInfo, "whoami", "GET")],
        {UserService: UserService(), PostController: PostController(), RequestInfo: RequestInfo()},
        config=OrchestratorConfig(**config),
    )


@pytest.fixture
def client():
    with TestClient(build_gateway().app) as client:
        yield client


def test_compose_returns_results_per_alias(client):
    response = client.post("/compose", json={
        "queries": {
            "user": {"path": "/users/:id", "params": {"id": "42"}, "body": {"@fields": ["id", "name"]}},
            "posts": {"path": "/users/42/posts", "body": {"@fields": ["title"]}},
            "broken": {"path": "/users/fail"},
            "missing": {"path": "/nope"},
        }
    })

    assert response.status_code == 200
    assert response.json() == {
        "user": {"id": "42", "name": "X"},
        "posts": [{"title": "First"}, {"title": "Second"}],
        "broken": {"error": "service UserService.fail() failed: database is down", "statusCode": 500},
        "missing": {"error": 'Path "/nope" not found in registry', "statusCode": 404},
    }


def test_invalid_json_is_rejected(client):
    response = client.post("/compose", content=b"{not json", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be valid JSON", "statusCode": 400}


def test_invalid_envelope_is_rejected(client):
    response = client.post("/compose", json={"queries": {"a": {"path": "/users/me", "verb": "GET"}}})

    assert response.status_code == 400
    assert "unknown properties: verb" in response.json()["error"]


def test_batch_and_payload_limits():
    gateway = build_gateway(max_batch_size=1, max_payload_size=200)

    with TestClient(gateway.app) as client:
        too_many = client.post("/compose", json={"queries": {"a": {"path": "/x"}, "b": {"path": "/y"}}})
        too_big = client.post("/compose", json={"queries": {"a": {"path": "/x", "body": {"s": "x" * 500}}}})

    assert too_many.status_code == 400
    assert too_many.json()["error"] == "Query count exceeds maximum of 1. Received 2 queries."
    assert too_big.status_code == 413


def test_request_id_header_reaches_handlers(client):
    response = client.post(
        "/compose",
        json={"queries": {"me": {"path": "/whoami"}}},
        headers={"x-request-id": "trace-123"},
    )

    assert response.json() == {"me": {"alias": "me", "parent": "trace-123"}}


def test_health_and_route_listing(client):
    assert client.get("/health").json() == {"status": "ok", "routes": 9}

    routes = client.get("/__routes").json()
    assert {"path": "/posts", "httpMethod": "POST", "handler": "PostController.create", "type": "controller"} in routes
    assert len(routes) == 9


@pytest.mark.asyncio
async def test_in_process_compose():
    gateway = build_gateway()

    results = await gateway.compose({"queries": {"me": {"path": "/users/me", "body": {"@fields": ["name"]}}}})

    assert results == {"me": {"name": "Me"}}


def test_non_utf8_body_is_rejected(client):
    response = client.post("/compose", content=b"\xff\xfe{", headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Request body must be valid JSON", "statusCode": 400}


# =============================================================================
# "@fields" on ordinary endpoints
# =============================================================================


def build_profile_app(gateway=None):
    """App with one ordinary endpoint; without a gateway no context middleware is installed."""
    received = {}

    if gateway is not None:
        app = gateway.app
        router = gateway.fields_router(prefix="/api")
    else:
        app = FastAPI()
        router = APIRouter(route_class=FieldSelectionRoute.with_max_depth(2))

    @router.post("/users/{user_id}")
    async def user_profile(user_id: str, payload: dict):
        context = current_context()
        received["payload"] = payload
        received["fields"] = context.fields.fields if context.fields else None
        return {
            "id": user_id,
            "name": "X",
            "profile": {"bio": "hello", "avatar": "a.png"},
            "posts": [{"id": 1, "title": "First"}, {"id": 2, "title": "Second"}],
        }

    app.include_router(router)
    return app, received


def test_fields_directive_on_ordinary_endpoint():
    app, received = build_profile_app(build_gateway())

    with TestClient(app) as client:
        response = client.post(
            "/api/users/42",
            json={"@fields": ["name", "profile.bio", "posts.title"], "verbose": True},
        )

    assert response.status_code == 200
    assert response.json() == {
        "name": "X",
        "profile": {"bio": "hello"},
        "posts": [{"title": "First"}, {"title": "Second"}],
    }
    assert received == {"payload": {"verbose": True}, "fields": ["name", "profile.bio", "posts.title"]}


def test_ordinary_endpoint_without_directive_is_untouched():
    app, received = build_profile_app(build_gateway())

    with TestClient(app) as client:
        response = client.post("/api/users/42", json={"verbose": True})

    assert set(response.json()) == {"id", "name", "profile", "posts"}
    assert received == {"payload": {"verbose": True}, "fields": None}


def test_fields_route_opens_its_own_context():
    app, received = build_profile_app()

    with TestClient(app) as client:
        ok = client.post("/users/7", json={"@fields": ["id"]})
        too_deep = client.post("/users/7", json={"@fields": ["profile.bio.text"]})
        not_strings = client.post("/users/7", json={"@fields": "id"})

    assert ok.json() == {"id": "7"}
    assert received["fields"] == ["id"]
    assert too_deep.status_code == 400
    assert too_deep.json() == {"error": 'Field "profile.bio.text" exceeds maximum depth of 2', "statusCode": 400}
    assert not_strings.json() == {"error": "@fields must be an array of strings", "statusCode": 400}
