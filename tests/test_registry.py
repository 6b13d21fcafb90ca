import pytest

from restcompose import RegistryError, RouteRegistration, RouteRegistry, adapt_routes
from restcompose.core.defs import OperationDescriptor, RouteEntry, infer_handler_type
from restcompose.runtime.resolver import InstanceRegistry

from .conftest import PostController, UserService


def entry(path, method_name="find_by_id", http_method="GET", handler_class=UserService, handler_type="service"):
    return RouteEntry(
        path=path,
        handler=OperationDescriptor(
            handler_class=handler_class,
            method_name=method_name,
            http_method=http_method,
            handler_type=handler_type,
        ),
    )


def test_resolve_before_register_raises(instances):
    registry = RouteRegistry(instances)

    with pytest.raises(RegistryError) as excinfo:
        registry.resolve("/users/1", "GET")

    assert excinfo.value.code == "NOT_INITIALIZED"


def test_register_twice_raises(registry):
    with pytest.raises(RegistryError) as excinfo:
        registry.register([entry("/other")])

    assert excinfo.value.code == "ALREADY_INITIALIZED"


def test_duplicate_routes_are_collected(instances):
    registry = RouteRegistry(instances)

    with pytest.raises(RegistryError) as excinfo:
        registry.register([
            entry("/a"),
            entry("/a", method_name="me"),
            entry("/b"),
            entry("/b", method_name="me"),
            entry("/a", http_method="POST"),
        ])

    error = excinfo.value
    assert error.code == "DUPLICATE_ROUTES"
    assert error.duplicates == ["GET:/a", "GET:/b"]
    assert "GET:/a" in error.message and "GET:/b" in error.message
    assert not registry.initialized


@pytest.mark.parametrize(
    "bad_entry, code",
    [
        (entry(""), "INVALID_PATH"),
        (entry("users"), "INVALID_PATH_FORMAT"),
        (entry("/x", handler_class=None), "MISSING_HANDLER_CLASS"),
        (entry("/x", method_name=""), "INVALID_METHOD_NAME"),
        (entry("/x", http_method="TRACE"), "INVALID_HTTP_METHOD"),
        (entry("/x", handler_type="job"), "INVALID_HANDLER_TYPE"),
    ],
)
def test_invalid_entries(instances, bad_entry, code):
    registry = RouteRegistry(instances)

    with pytest.raises(RegistryError) as excinfo:
        registry.register([bad_entry])

    assert excinfo.value.code == code
    assert not registry.initialized


def test_unresolvable_handlers_fail_validation():
    class Orphan:
        def run(self):
            return 1

    instances = InstanceRegistry({UserService: UserService()})
    registry = RouteRegistry(instances)

    with pytest.raises(RegistryError) as excinfo:
        registry.register([
            entry("/orphan", method_name="run", handler_class=Orphan),
            entry("/missing", method_name="nope"),
        ])

    message = excinfo.value.message
    assert excinfo.value.code == "HANDLER_VALIDATION_FAILED"
    assert "Orphan not found" in message
    assert "Method 'nope' not found or not callable on UserService" in message
    assert not registry.initialized


def test_exact_match_wins_over_pattern(registry):
    resolved = registry.resolve("/users/me", "GET")

    assert resolved.metadata.method_name == "me"
    assert resolved.params == {}


def test_pattern_extracts_params(registry):
    resolved = registry.resolve("/users/42/posts", "GET")

    assert resolved.metadata.handler_class is PostController
    assert resolved.params == {"id": "42"}
    assert resolved.pattern == "/users/:id/posts"


def test_literal_pattern_path_resolves_exactly(registry):
    resolved = registry.resolve("/users/:id", "GET")

    assert resolved.metadata.method_name == "find_by_id"
    assert resolved.params == {}


@pytest.mark.parametrize(
    "path, verb",
    [
        ("/users/42/comments", "GET"),
        ("/users/42/posts/1", "GET"),
        ("/users/42", "DELETE"),
        ("/nothing", "GET"),
    ],
)
def test_no_match_returns_none(registry, path, verb):
    assert registry.resolve(path, verb) is None
    assert not registry.has(path, verb)


def test_match_path_multiple_params():
    params = RouteRegistry.match_path("/orgs/:org/repos/:repo", "/orgs/acme/repos/api")

    assert params == {"org": "acme", "repo": "api"}
    assert RouteRegistry.match_path("/orgs/:org/repos/:repo", "/orgs/acme/issues/api") is None
    assert RouteRegistry.match_path("/orgs/:/repos", "/orgs/acme/repos") is None


def test_missing_instance_at_resolve_time_is_no_match():
    class Flaky:
        def __init__(self):
            self.available = True

        def get(self, handler_class):
            return UserService() if self.available else None

    provider = Flaky()
    registry = RouteRegistry(provider)
    registry.register([entry("/users/:id")])

    provider.available = False
    assert registry.resolve("/users/7", "GET") is None


def test_routes_len_and_clear(registry):
    assert len(registry) == len(registry.routes()) == 8
    assert {e.path for e in registry.routes()} >= {"/users/me", "/users/:id"}

    registry.clear()
    assert not registry.initialized
    registry.register([entry("/again")])
    assert len(registry) == 1


def test_adapt_routes_infers_handler_type():
    entries = adapt_routes([
        RouteRegistration("/users/:id", UserService, "find_by_id", "GET"),
        RouteRegistration("/posts", PostController, "create", "POST"),
    ])

    assert [e.handler.handler_type for e in entries] == ["service", "controller"]
    assert infer_handler_type(type("AdminControllerV2", (), {})) == "controller"
