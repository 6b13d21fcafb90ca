import pytest

from restcompose import BatchSizeError, ComposeQuery, PayloadTooLargeError, RequestValidator, ValidationError
from restcompose.core.validator import payload_size


def test_valid_envelope_returns_typed_queries():
    queries = RequestValidator().validate({
        "queries": {
            "me": {"path": "/users/me", "body": {"@fields": ["id"]}},
            "posts": {"path": "/users/:id/posts", "params": {"id": "42"}, "query": {"page": 1}},
        }
    })

    assert set(queries) == {"me", "posts"}
    assert isinstance(queries["posts"], ComposeQuery)
    assert queries["posts"].params == {"id": "42"}
    assert queries["me"].query is None


@pytest.mark.parametrize(
    "request_body, message",
    [
        ([], "Request must be an object with a 'queries' property"),
        ({}, "Request must have a 'queries' property"),
        ({"queries": []}, "Request 'queries' must be an object mapping aliases to query definitions"),
        ({"queries": {}, "extra": 1}, "Request contains unknown properties: extra. Only 'queries' is allowed."),
    ],
)
def test_envelope_shape_errors(request_body, message):
    with pytest.raises(ValidationError) as excinfo:
        RequestValidator().validate(request_body)

    assert excinfo.value.message == message
    assert excinfo.value.status_code == 400


def test_query_errors_are_collected():
    with pytest.raises(ValidationError) as excinfo:
        RequestValidator().validate({
            "queries": {
                "a": "nope",
                "b": {"body": {}},
                "c": {"path": "", "headers": {}},
                "d": {"path": "/x", "params": [1]},
            }
        })

    errors = excinfo.value.errors
    assert errors == [
        'Query "a" must be an object',
        "Query \"b\" must have a 'path' property",
        "Query \"c\" 'path' must be a non-empty string",
        'Query "c" contains unknown properties: headers. Allowed: path, body, params, query',
        "Query \"d\" 'params' must be an object",
    ]
    assert excinfo.value.message == "; ".join(errors)


def test_batch_size_limits():
    validator = RequestValidator(max_batch_size=2)

    with pytest.raises(BatchSizeError) as excinfo:
        validator.validate({"queries": {f"q{i}": {"path": "/x"} for i in range(3)}})
    assert excinfo.value.message == "Query count exceeds maximum of 2. Received 3 queries."
    assert excinfo.value.status_code == 400

    with pytest.raises(BatchSizeError) as excinfo:
        validator.validate({"queries": {}})
    assert excinfo.value.message == "At least one query is required"


def test_payload_size_limit():
    request = {"queries": {"a": {"path": "/x", "body": {"blob": "é" * 100}}}}
    size = payload_size(request)

    assert size > 200
    RequestValidator(max_payload_size=size).validate(request)

    with pytest.raises(PayloadTooLargeError) as excinfo:
        RequestValidator(max_payload_size=size - 1).validate(request)
    assert excinfo.value.status_code == 413
