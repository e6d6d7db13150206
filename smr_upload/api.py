"""
Module for the authenticated GraphQL API calls around a version upload.
"""
import logging
from typing import Any, Dict, Optional

import requests

from .errors import PollError, RemoteError
from .models import Stability, VersionReviewState
from .transport import Timeout

logger = logging.getLogger(__name__)

CREATE_VERSION_MUTATION = """mutation CreateVersion($modId: ModID!) {
  versionID: createVersion(modId: $modId)
}"""

FINALIZE_CREATE_VERSION_MUTATION = """mutation FinalizeCreateVersion($modId: ModID!, $versionId: VersionID!, $version: NewVersion!) {
  success: finalizeCreateVersion(modId: $modId, versionId: $versionId, version: $version)
}"""

CHECK_VERSION_UPLOAD_STATE_QUERY = """query CheckVersionUploadState($modId: ModID!, $versionId: VersionID!) {
  state: checkVersionUploadState(modId: $modId, versionId: $versionId) {
    auto_approved
    version {
      id
    }
  }
}"""


class GraphQLRequestError(Exception):
    """A GraphQL request failed in transport or returned errors."""


class SMRApiClient:
    """Thin client for the mod repository's GraphQL API."""

    def __init__(self, endpoint_url: str, api_key: str,
                 session: Optional[requests.Session] = None,
                 timeout: Timeout = None):
        """Initialize the API client.

        Args:
            endpoint_url: Full GraphQL endpoint URL
            api_key: API key sent in the Authorization header
            session: Session to send requests with. A new one is created if omitted.
            timeout: Request timeout passed through to requests
        """
        self.endpoint_url = endpoint_url
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def execute(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Run a GraphQL document and return its ``data`` object.

        Raises:
            GraphQLRequestError: On network failure, a non-2xx status, an
                unparseable body or a non-empty ``errors`` list
        """
        try:
            response = self.session.post(
                self.endpoint_url,
                json={"query": query, "variables": variables},
                headers={"Authorization": self.api_key},
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise GraphQLRequestError(str(e)) from e

        decode_error = None
        try:
            payload = response.json()
        except ValueError as e:
            payload = None
            decode_error = e

        # GraphQL servers report errors in the body of 4xx/5xx responses too
        errors = payload.get("errors") if isinstance(payload, dict) else None
        if errors:
            messages = "; ".join(str(err.get("message", err)) if isinstance(err, dict) else str(err)
                                 for err in errors)
            raise GraphQLRequestError(f"{messages} (HTTP {response.status_code})")

        try:
            response.raise_for_status()
        except requests.RequestException as e:
            raise GraphQLRequestError(str(e)) from e

        if payload is None:
            raise GraphQLRequestError(f"invalid JSON response: {decode_error}") from decode_error
        if not isinstance(payload, dict):
            raise GraphQLRequestError(f"unexpected response payload: {payload!r}")

        return payload.get("data") or {}

    def create_version(self, mod_id: str) -> str:
        """Create a new version record for a mod.

        Returns:
            The version ID assigned by the server

        Raises:
            RemoteError: If the call fails or no ID is returned
        """
        try:
            data = self.execute(CREATE_VERSION_MUTATION, {"modId": mod_id})
        except GraphQLRequestError as e:
            raise RemoteError(f"failed to create version for mod {mod_id}: {e}") from e

        version_id = data.get("versionID")
        if not version_id:
            raise RemoteError(f"no version id returned for mod {mod_id}")
        return version_id

    def finalize_version(self, mod_id: str, version_id: str, changelog: str,
                         stability: Stability) -> bool:
        """Finalize an uploaded version.

        Returns:
            The success flag reported by the server

        Raises:
            RemoteError: If the call fails
        """
        variables = {
            "modId": mod_id,
            "versionId": version_id,
            "version": {
                "changelog": changelog,
                "stability": stability.api_value,
            },
        }
        try:
            data = self.execute(FINALIZE_CREATE_VERSION_MUTATION, variables)
        except GraphQLRequestError as e:
            raise RemoteError(f"failed to finalize version {version_id}: {e}") from e

        return bool(data.get("success"))

    def check_version_upload_state(self, mod_id: str, version_id: str) -> VersionReviewState:
        """Fetch the current upload state of a version.

        Raises:
            PollError: If the query fails
        """
        try:
            data = self.execute(CHECK_VERSION_UPLOAD_STATE_QUERY,
                                {"modId": mod_id, "versionId": version_id})
        except GraphQLRequestError as e:
            raise PollError(f"failed to check upload state of version {version_id}: {e}") from e

        state = data.get("state") or {}
        version = state.get("version") or {}
        return VersionReviewState(
            version_id=version_id,
            has_version=bool(version.get("id")),
            auto_approved=bool(state.get("auto_approved"))
        )

    def close(self) -> None:
        self.session.close()
