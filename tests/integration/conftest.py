"""Integration test fixtures: a real mockaws server driven by boto3."""

import socket
import threading
import time
import uuid

import boto3
import pytest
import uvicorn

from mockaws.engine import ItemStoreEngine
from mockaws.server import create_app
from mockaws.store import MEMORY_URL, RecordStore


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port: int = sock.getsockname()[1]
        return port


@pytest.fixture(scope="session")
def mockaws_endpoint():
    """Endpoint URL of a mockaws server running in a background thread."""
    store = RecordStore.from_url(MEMORY_URL)
    port = _free_port()
    config = uvicorn.Config(
        create_app(ItemStoreEngine(store)),
        host="127.0.0.1",
        port=port,
        log_level="warning",
    )
    server = uvicorn.Server(config)
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    deadline = time.monotonic() + 10
    while not server.started:
        if time.monotonic() > deadline or not thread.is_alive():
            pytest.fail("mockaws server did not start")
        time.sleep(0.05)

    yield f"http://127.0.0.1:{port}"

    server.should_exit = True
    thread.join(timeout=5)
    store.close()


@pytest.fixture
def dynamodb_client(mockaws_endpoint):
    """boto3 DynamoDB client pointed at the emulator."""
    return boto3.client(
        "dynamodb",
        endpoint_url=mockaws_endpoint,
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.fixture
def unique_name():
    """Generate unique table name for test isolation."""
    return f"integration-{uuid.uuid4().hex[:8]}"
