"""
Tests for the GraphQL API client.
"""
from unittest.mock import MagicMock

import pytest
import requests

from smr_upload.api import (
    CHECK_VERSION_UPLOAD_STATE_QUERY,
    CREATE_VERSION_MUTATION,
    FINALIZE_CREATE_VERSION_MUTATION,
    SMRApiClient
)
from smr_upload.errors import PollError, RemoteError
from smr_upload.models import Stability


def json_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return response


@pytest.fixture
def mock_session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(mock_session):
    return SMRApiClient("https://api.test/v2/query", "secret-key", session=mock_session)


def test_create_version(client, mock_session):
    mock_session.post.return_value = json_response({"data": {"versionID": "v-42"}})

    assert client.create_version("mod-1") == "v-42"

    _, kwargs = mock_session.post.call_args
    assert kwargs["json"] == {"query": CREATE_VERSION_MUTATION, "variables": {"modId": "mod-1"}}
    assert kwargs["headers"] == {"Authorization": "secret-key"}


def test_create_version_graphql_error(client, mock_session):
    mock_session.post.return_value = json_response({
        "data": None,
        "errors": [{"message": "user not authorized to perform this action"}],
    })

    with pytest.raises(RemoteError, match="not authorized"):
        client.create_version("mod-1")


def test_create_version_connection_error(client, mock_session):
    mock_session.post.side_effect = requests.ConnectionError("refused")

    with pytest.raises(RemoteError):
        client.create_version("mod-1")


def test_create_version_without_id(client, mock_session):
    mock_session.post.return_value = json_response({"data": {"versionID": None}})

    with pytest.raises(RemoteError, match="no version id"):
        client.create_version("mod-1")


def test_finalize_version_sends_changelog_and_stability(client, mock_session):
    mock_session.post.return_value = json_response({"data": {"success": True}})

    assert client.finalize_version("mod-1", "v-42", "Fixed things", Stability.ALPHA) is True

    _, kwargs = mock_session.post.call_args
    assert kwargs["json"]["query"] == FINALIZE_CREATE_VERSION_MUTATION
    assert kwargs["json"]["variables"] == {
        "modId": "mod-1",
        "versionId": "v-42",
        "version": {"changelog": "Fixed things", "stability": "ALPHA"},
    }


def test_finalize_version_reports_failure_flag(client, mock_session):
    mock_session.post.return_value = json_response({"data": {"success": False}})

    assert client.finalize_version("mod-1", "v-42", "", Stability.RELEASE) is False


def test_finalize_version_http_error(client, mock_session):
    mock_session.post.return_value = json_response({}, status_code=502)

    with pytest.raises(RemoteError):
        client.finalize_version("mod-1", "v-42", "", Stability.RELEASE)


@pytest.mark.parametrize("state,has_version,auto_approved", [
    (None, False, False),
    ({"auto_approved": False, "version": None}, False, False),
    ({"auto_approved": False, "version": {"id": ""}}, False, False),
    ({"auto_approved": False, "version": {"id": "v-42"}}, True, False),
    ({"auto_approved": True, "version": {"id": "v-42"}}, True, True),
])
def test_check_version_upload_state(client, mock_session, state, has_version, auto_approved):
    mock_session.post.return_value = json_response({"data": {"state": state}})

    result = client.check_version_upload_state("mod-1", "v-42")

    assert result.version_id == "v-42"
    assert result.has_version is has_version
    assert result.auto_approved is auto_approved
    _, kwargs = mock_session.post.call_args
    assert kwargs["json"]["query"] == CHECK_VERSION_UPLOAD_STATE_QUERY


def test_check_version_upload_state_invalid_json(client, mock_session):
    response = json_response(None)
    response.json.side_effect = ValueError("Expecting value")
    mock_session.post.return_value = response

    with pytest.raises(PollError):
        client.check_version_upload_state("mod-1", "v-42")


def test_finalize_version_graphql_error_with_ok_status(client, mock_session):
    mock_session.post.return_value = json_response({
        "data": {"success": None},
        "errors": [{"message": "version is not fully uploaded"}],
    })

    with pytest.raises(RemoteError, match="not fully uploaded"):
        client.finalize_version("mod-1", "v-42", "", Stability.RELEASE)


def test_graphql_error_message_kept_on_client_error_status(client, mock_session):
    response = json_response({"errors": [{"message": "invalid api key"}]}, status_code=401)
    mock_session.post.return_value = response

    with pytest.raises(RemoteError, match=r"invalid api key \(HTTP 401\)"):
        client.create_version("mod-1")


def test_client_error_status_without_graphql_errors(client, mock_session):
    response = json_response(None, status_code=404)
    response.json.side_effect = ValueError("Expecting value")
    mock_session.post.return_value = response

    with pytest.raises(RemoteError, match="404 error"):
        client.create_version("mod-1")
