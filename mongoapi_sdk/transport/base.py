"""
Base transport interface.
"""

from abc import ABC, abstractmethod

from ..models import RawResponse, Request


class Transport(ABC):
    """
    Abstract base class for transports.

    A transport performs exactly one HTTP exchange per ``send`` call and
    never retries on its own; retrying belongs to the client.
    """

    @abstractmethod
    def send(self, request: Request, url: str, timeout: float) -> RawResponse:
        """
        Send HTTP request.

        Args:
            request: Fully-formed request
            url: Absolute URL (base URL + request path)
            timeout: Connect/read timeout in seconds

        Returns:
            RawResponse with status code, body text and headers

        Raises:
            TransportError: When no response was received
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources."""
