"""
HTTP client for forwarding print jobs to an operator-side relay.

The dashboard server usually runs somewhere without a printer attached.
A relay (relay_app.py) runs on the counter machine and does the actual
printing. This client posts a job to each configured relay URL in turn:

    200            -> delivered, stop
    403            -> IP not authorized, stop (do not try other relays)
    other status   -> rejected, try the next URL
    no connection  -> unreachable, try the next URL
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import requests

from logging_config import get_logger

logger = get_logger(__name__)


class RelayOutcome(Enum):
    DELIVERED = "delivered"
    UNAUTHORIZED = "unauthorized"
    REJECTED = "rejected"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class RelayResponse:
    """Result of posting one job to one relay URL."""

    url: str
    outcome: RelayOutcome
    message: str
    status_code: Optional[int] = None
    auth_url: Optional[str] = None


class RelayClient:
    """
    Posts print jobs to relay ``/print`` endpoints.

    Attributes:
        urls: Candidate relay base URLs, tried in order
        timeout: Seconds per URL
    """

    def __init__(
        self,
        urls: List[str],
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.urls = [url.rstrip("/") for url in urls]
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    @property
    def enabled(self) -> bool:
        return bool(self.urls)

    def forward(self, payload: Dict[str, Any]) -> List[RelayResponse]:
        """
        Try each relay URL until one delivers or refuses authorization.

        Args:
            payload: JSON body for the relay's POST /print

        Returns:
            One RelayResponse per URL actually tried, in order. The last
            element decides the overall outcome.
        """
        responses: List[RelayResponse] = []
        for base_url in self.urls:
            response = self._post(base_url, payload)
            responses.append(response)
            if response.outcome in (RelayOutcome.DELIVERED, RelayOutcome.UNAUTHORIZED):
                break
        return responses

    def _post(self, base_url: str, payload: Dict[str, Any]) -> RelayResponse:
        url = f"{base_url}/print"
        try:
            response = self._session.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Relay {url} timed out after {self.timeout}s")
            return RelayResponse(url, RelayOutcome.UNREACHABLE, "Relay timed out")
        except requests.exceptions.ConnectionError:
            logger.info(f"Relay {url} not reachable")
            return RelayResponse(url, RelayOutcome.UNREACHABLE, "Relay not reachable")
        except requests.exceptions.RequestException as e:
            logger.warning(f"Relay {url} request failed: {e}")
            return RelayResponse(url, RelayOutcome.UNREACHABLE, str(e))

        body = _json_body(response)
        message = body.get("message") or f"HTTP {response.status_code}"

        if response.status_code == 200:
            logger.info(f"Relay {url} accepted job")
            return RelayResponse(url, RelayOutcome.DELIVERED, message, 200)

        if response.status_code == 403:
            auth_url = body.get("authUrl") or base_url
            logger.warning(f"Relay {url} refused job: IP not authorized")
            return RelayResponse(
                url, RelayOutcome.UNAUTHORIZED, message, 403, auth_url=auth_url
            )

        logger.warning(f"Relay {url} returned HTTP {response.status_code}: {message}")
        return RelayResponse(url, RelayOutcome.REJECTED, message, response.status_code)


def _json_body(response: requests.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
