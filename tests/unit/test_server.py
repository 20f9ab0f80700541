"""Tests for the HTTP front end."""

import json

import pytest
from fastapi.testclient import TestClient

from mockaws import schema
from mockaws.engine import ItemStoreEngine
from mockaws.server import create_app

TARGET = "DynamoDB_20120810."


@pytest.fixture
def client(engine: ItemStoreEngine) -> TestClient:
    """Test client for an app over the per-test engine."""
    return TestClient(create_app(engine))


def _call(client: TestClient, operation: str, body: dict, path: str = "/"):
    return client.post(
        path,
        content=json.dumps(body),
        headers={
            "X-Amz-Target": TARGET + operation,
            "Content-Type": "application/x-amz-json-1.0",
        },
    )


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient) -> None:
        """Health check returns OK."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.text == "OK"


class TestDispatch:
    """Tests for request dispatch."""

    def test_put_and_get(self, client: TestClient) -> None:
        """Items written over HTTP can be read back."""
        item = {"id": {"S": "u1"}, "age": {"N": "7"}}
        response = _call(client, "PutItem", {"TableName": "users", "Item": item})
        assert response.status_code == 200
        assert response.json() == {}

        response = _call(client, "GetItem", {"TableName": "users", "Key": {"id": {"S": "u1"}}})
        assert response.status_code == 200
        assert response.json() == {"Item": item}

    def test_response_headers(self, client: TestClient) -> None:
        """Responses carry the protocol content type and a request id."""
        response = _call(client, "Scan", {"TableName": "users"})
        assert response.headers["content-type"].startswith(schema.CONTENT_TYPE)
        assert len(response.headers["x-amzn-requestid"]) == 26

    def test_any_path(self, client: TestClient) -> None:
        """The target header, not the path, selects the operation."""
        response = _call(client, "Scan", {"TableName": "users"}, path="/some/prefix")
        assert response.status_code == 200
        assert response.json()["Count"] == 0

    def test_empty_body(self, client: TestClient) -> None:
        """An empty body is an empty request object."""
        response = client.post("/", headers={"X-Amz-Target": TARGET + "Scan"})
        assert response.status_code == 400
        assert response.json()["__type"].endswith("#ValidationException")

    def test_query_pagination(self, client: TestClient) -> None:
        """Query responses carry counts and continuation keys."""
        for sort in ("1", "2", "3"):
            _call(client, "PutItem", {"TableName": "t", "Item": {"$p": "a", "$s": sort}})

        response = _call(
            client,
            "Query",
            {
                "TableName": "t",
                "KeyConditionExpression": "#p = :p",
                "ExpressionAttributeNames": {"#p": "$p"},
                "ExpressionAttributeValues": {":p": "a"},
                "Limit": 2,
            },
        )
        body = response.json()
        assert body["Count"] == 2
        assert body["ScannedCount"] == 3
        assert body["LastEvaluatedKey"] == {"$p": "a", "$s": "2"}


class TestErrors:
    """Tests for error responses."""

    def test_missing_target(self, client: TestClient) -> None:
        """Requests without a target header are rejected."""
        response = client.post("/", content="{}")
        assert response.status_code == 400
        assert response.json()["message"] == "Missing X-Amz-Target header"

    def test_unknown_operation(self, client: TestClient) -> None:
        """Unknown operations report UnknownOperationException."""
        response = _call(client, "DescribeTable", {"TableName": "users"})
        assert response.status_code == 400
        assert response.json() == {
            "__type": "com.amazonaws.dynamodb.v20120810#UnknownOperationException",
            "message": "Unsupported operation: DescribeTable",
        }

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '"text"'])
    def test_body_not_object(self, client: TestClient, content: str) -> None:
        """Bodies that are not JSON objects report SerializationException."""
        response = client.post("/", content=content, headers={"X-Amz-Target": TARGET + "Scan"})
        assert response.status_code == 400
        assert response.json()["__type"].endswith("#SerializationException")

    def test_conditional_check_failed(self, client: TestClient) -> None:
        """Failed conditions map to ConditionalCheckFailedException."""
        body = {
            "TableName": "users",
            "Item": {"id": "u1"},
            "ConditionExpression": "attribute_not_exists(id)",
        }
        assert _call(client, "PutItem", body).status_code == 200
        response = _call(client, "PutItem", body)
        assert response.status_code == 400
        assert response.json()["__type"].endswith("#ConditionalCheckFailedException")

    def test_resource_not_found(self, client: TestClient) -> None:
        """Updating an absent item maps to ResourceNotFoundException."""
        response = _call(
            client,
            "UpdateItem",
            {"TableName": "users", "Key": {"id": "nope"}, "UpdateExpression": "SET a = :a"},
        )
        assert response.status_code == 400
        assert response.json()["__type"].endswith("#ResourceNotFoundException")

    def test_transaction_cancelled(self, client: TestClient) -> None:
        """Cancelled transactions include their reasons."""
        response = _call(
            client,
            "TransactWriteItems",
            {
                "TransactItems": [
                    {"Put": {"TableName": "users", "Item": {"id": "u1"}}},
                    {
                        "Update": {
                            "TableName": "users",
                            "Key": {"id": "ghost"},
                            "UpdateExpression": "SET a = :a",
                        }
                    },
                ]
            },
        )
        assert response.status_code == 400
        body = response.json()
        assert body["__type"].endswith("#TransactionCanceledException")
        assert [r["Code"] for r in body["CancellationReasons"]] == ["None", "ResourceNotFound"]

    def test_storage_error(self, client: TestClient, engine: ItemStoreEngine) -> None:
        """Database failures are reported as 500 InternalServerError."""
        schema.items.drop(engine.store.engine)
        response = _call(client, "Scan", {"TableName": "users"})
        assert response.status_code == 500
        assert response.json()["__type"].endswith("#InternalServerError")

    def test_unexpected_error(
        self, client: TestClient, engine: ItemStoreEngine, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Unexpected exceptions become 500 responses."""

        def boom(operation_name: str, body: dict) -> dict:
            raise RuntimeError("boom")

        monkeypatch.setattr(engine, "handle", boom)
        response = _call(client, "Scan", {"TableName": "users"})
        assert response.status_code == 500
        assert response.json()["message"] == "boom"


class TestCors:
    """Tests for CORS handling."""

    def test_preflight(self, client: TestClient) -> None:
        """Browser preflights for SDK headers are allowed."""
        response = client.options(
            "/",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "x-amz-target, content-type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestLogging:
    """Tests for structured request logs."""

    def test_request_logged(self, client: TestClient, capsys: pytest.CaptureFixture) -> None:
        """Each request logs a JSON line with its operation."""
        _call(client, "Scan", {"TableName": "users"})
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        received = [entry for entry in lines if entry["message"] == "Request received"]
        assert received[0]["operation"] == "Scan"
        assert received[0]["level"] == "INFO"

    def test_request_fields_bound(
        self, client: TestClient, capsys: pytest.CaptureFixture
    ) -> None:
        """Every line of a request carries its request id and operation."""
        response = _call(client, "DescribeTable", {})
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [entry["message"] for entry in lines] == ["Request received", "Request failed"]
        for entry in lines:
            assert entry["request_id"] == response.headers["x-amzn-requestid"]
            assert entry["operation"] == "DescribeTable"
            assert entry["service"] == "mockaws"

    def test_failure_logged(self, client: TestClient, capsys: pytest.CaptureFixture) -> None:
        """Failed requests log their error code."""
        _call(client, "DescribeTable", {})
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        failed = [entry for entry in lines if entry["message"] == "Request failed"]
        assert failed[0]["code"] == "UnknownOperationException"
        assert failed[0]["level"] == "WARNING"
