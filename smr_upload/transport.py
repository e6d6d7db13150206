"""
Module for sending chunk upload requests over HTTP.
"""
import logging
from typing import Optional, Tuple, Union

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)

Timeout = Optional[Union[float, Tuple[float, float]]]


class HttpTransport:
    """Posts pre-encoded request bodies to the API endpoint.

    Only network-layer failures are reported. The response payload of a
    chunk upload is returned untouched and never retried.
    """

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: Timeout = None):
        """Initialize the transport.

        Args:
            session: Session to send requests with. A new one is created if omitted.
            timeout: Request timeout passed through to requests
        """
        self.session = session or requests.Session()
        self.timeout = timeout

    def send(self, endpoint_url: str, body: bytes, content_type: str,
             api_key: str) -> requests.Response:
        """Issue a single authenticated POST.

        Args:
            endpoint_url: Full GraphQL endpoint URL
            body: Encoded request body
            content_type: Value of the Content-Type header
            api_key: Value of the Authorization header

        Returns:
            The raw response

        Raises:
            TransportError: If the request could not be completed
        """
        headers = {
            'Content-Type': content_type,
            'Authorization': api_key,
        }
        try:
            response = self.session.post(
                endpoint_url,
                data=body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"failed to execute request: {e}") from e

        logger.debug(f"POST {endpoint_url} returned {response.status_code}")
        return response

    def close(self) -> None:
        self.session.close()
