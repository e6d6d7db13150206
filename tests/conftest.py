"""
Test fixtures for the publishing pipeline.
"""
import os
import re
from unittest.mock import MagicMock

import pytest

from smr_upload.api import SMRApiClient
from smr_upload.config import PublisherConfig
from smr_upload.models import Stability, UploadTarget, VersionReviewState
from smr_upload.orchestrator import UploadOrchestrator
from smr_upload.transport import HttpTransport

MB = 1_000_000


def parse_multipart(body: bytes, content_type: str) -> dict:
    """Split a multipart/form-data body into {field name: (headers, data)}."""
    boundary = content_type.split("boundary=", 1)[1].encode()
    parts = {}
    for section in body.split(b"--" + boundary)[1:-1]:
        head, _, data = section[2:].partition(b"\r\n\r\n")
        headers = head.decode().split("\r\n")
        disposition = next(h for h in headers if h.lower().startswith("content-disposition"))
        name = re.search(r'; name="([^"]*)"', disposition).group(1)
        parts[name] = (headers, data[:-2])
    return parts


@pytest.fixture
def make_artifact(tmp_path):
    """Create artifact files of a given size with non-repeating content."""
    def _make(size: int, name: str = "ExampleMod.smod"):
        path = tmp_path / name
        path.write_bytes(os.urandom(size))
        return path
    return _make


@pytest.fixture
def three_chunk_artifact(make_artifact):
    """An artifact needing three 1MB chunks."""
    return make_artifact(2 * MB + 500_000)


@pytest.fixture
def config():
    """Config with the smallest allowed chunk size."""
    return PublisherConfig(
        api_key="test-key",
        api_base="https://api.test",
        graphql_path="/v2/query",
        chunk_size=MB
    )


@pytest.fixture
def fake_api():
    """API client double that approves on the first state check."""
    api = MagicMock(spec=SMRApiClient)
    api.create_version.return_value = "version-1"
    api.finalize_version.return_value = True
    api.check_version_upload_state.return_value = VersionReviewState(
        version_id="version-1", has_version=True, auto_approved=True
    )
    return api


@pytest.fixture
def fake_transport():
    """Transport double recording every chunk request."""
    return MagicMock(spec=HttpTransport)


@pytest.fixture
def sleeps():
    """Records the delays requested by the orchestrator."""
    return []


@pytest.fixture
def orchestrator(config, fake_api, fake_transport, sleeps):
    """Orchestrator wired to test doubles with a recording sleep."""
    return UploadOrchestrator(
        config,
        api_client=fake_api,
        transport=fake_transport,
        sleep=sleeps.append
    )


@pytest.fixture
def upload_target(three_chunk_artifact):
    """Upload target for the three chunk artifact."""
    return UploadTarget.from_path(
        "mod-123",
        three_chunk_artifact,
        "Fixed conveyor belts",
        Stability.BETA
    )
