import asyncio
import fnmatch

import pytest

from restcompose import RouteRegistration, RouteRegistry, adapt_routes
from restcompose.core.errors import HTTPError
from restcompose.runtime.resolver import InstanceRegistry


class UserService:
    """Async service used across the tests."""

    def __init__(self):
        self.calls = 0

    async def find_by_id(self, params, body=None):
        self.calls += 1
        return {
            "id": params["id"],
            "name": "X",
            "email": "x@y.z",
            "profile": {"bio": "hello", "avatar": "a.png"},
        }

    async def me(self, *args):
        self.calls += 1
        return {"id": "1", "name": "Me", "args": list(args)}

    async def search(self, params, query=None, body=None):
        self.calls += 1
        return {"params": params, "query": query, "body": body}

    async def slow(self, *args):
        await asyncio.sleep(0.5)
        return {"slow": True}

    async def fail(self, *args):
        raise RuntimeError("database is down")

    async def forbidden(self, *args):
        raise HTTPError("not yours", 403)


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis with decode_responses=True."""

    def __init__(self):
        self.data = {}
        self.ttls = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def exists(self, *keys):
        return sum(1 for key in keys if key in self.data)

    async def scan_iter(self, match=None):
        for key in list(self.data):
            if match is None or fnmatch.fnmatch(key, match):
                yield key


class PostController:
    def list_for_user(self, params, body=None):
        return [
            {"id": 1, "title": "First", "body": "...", "author": {"id": params["id"], "name": "X"}},
            {"id": 2, "title": "Second", "body": "...", "author": {"id": params["id"], "name": "X"}},
        ]

    def create(self, params, body):
        return {"created": body}


ROUTES = [
    RouteRegistration("/users/me", UserService, "me", "GET"),
    RouteRegistration("/search/users", UserService, "search", "POST"),
    RouteRegistration("/users/slow", UserService, "slow", "GET"),
    RouteRegistration("/users/fail", UserService, "fail", "GET"),
    RouteRegistration("/users/forbidden", UserService, "forbidden", "GET"),
    RouteRegistration("/users/:id", UserService, "find_by_id", "GET"),
    RouteRegistration("/users/:id/posts", PostController, "list_for_user", "GET"),
    RouteRegistration("/posts", PostController, "create", "POST"),
]


@pytest.fixture
def user_service():
    return UserService()


@pytest.fixture
def instances(user_service):
    return InstanceRegistry({UserService: user_service, PostController: PostController()})


@pytest.fixture
def registry(instances):
    registry = RouteRegistry(instances)
    registry.register(adapt_routes(ROUTES))
    return registry
