"""
Requests-based transport (synchronous).
"""

import logging
from typing import Optional

import requests

from .base import Transport
from ..exceptions import TransportError, ValidationError
from ..models import RawResponse, Request

logger = logging.getLogger("mongoapi_sdk.transport")


class RequestsTransport(Transport):
    """
    Synchronous transport using the requests library.

    Features:
    - Keep-alive connection reuse via session
    - Separate connect/read timeouts
    - Configurable TLS verification
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        verify_ssl: bool = True,
    ):
        """
        Initialize requests transport.

        Args:
            session: Optional requests.Session instance
            verify_ssl: Verify TLS certificates
        """
        self._external_session = session is not None
        self.session = session or requests.Session()
        self.session.verify = verify_ssl

    def send(self, request: Request, url: str, timeout: float) -> RawResponse:
        try:
            data = request.body.encode("utf-8") if request.body is not None else None
        except UnicodeEncodeError as e:
            raise ValidationError("Request body is not valid UTF-8", detail=str(e)) from e

        try:
            response = self.session.request(
                method=request.method,
                url=url,
                headers=request.headers,
                data=data,
                timeout=(timeout, timeout),
            )
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Request timed out: {e}", code="timeout", detail=url) from e
        except requests.exceptions.SSLError as e:
            raise TransportError(f"TLS failure: {e}", code="tls_error", detail=url) from e
        except requests.exceptions.ConnectionError as e:
            raise TransportError(f"Connection failed: {e}", code="connection_error", detail=url) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Network request failed: {e}", detail=url) from e

        return RawResponse(
            status_code=response.status_code,
            text=response.text,
            headers=dict(response.headers),
        )

    def close(self) -> None:
        if not self._external_session:
            self.session.close()
