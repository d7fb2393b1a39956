"""
Trusted Party HTTP Client

Synchronous httpx client with retry for the consent authority. Failures
are logged and reported as None; callers decide how severe they are.
"""

from typing import Any

import httpx
import structlog
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ttp_consent.config import RetrySettings
from ttp_consent.fhir import Resource, to_fhir_json

FHIR_JSON = "application/fhir+json"


class TtpResponseError(Exception):
    """Non-2xx answer of the trusted party."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class TtpClient:
    """
    HTTP client for the trusted party (gICS) FHIR API.

    Usage:
        with TtpClient("http://localhost:8090/ttp-fhir/fhir/gics") as client:
            body = client.post("$isConsented", parameters)
    """

    def __init__(
        self,
        base_uri: str,
        credentials: tuple[str, str] | None = None,
        retry: RetrySettings | None = None,
        http_client: httpx.Client | None = None,
        logger=None,
    ):
        self.base_uri = base_uri.rstrip("/")
        self.retry = retry or RetrySettings()
        self.logger = logger or structlog.get_logger(__name__)
        self._auth = httpx.BasicAuth(*credentials) if credentials else None
        self._client = http_client or httpx.Client(timeout=self.retry.timeout)

    def __enter__(self) -> "TtpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def url(self, path: str) -> str:
        return f"{self.base_uri}/{path.lstrip('/')}"

    def post(self, endpoint: str, document: Resource) -> str | None:
        """POST a FHIR document to an operation endpoint."""
        return self._execute(
            "POST",
            endpoint,
            content=to_fhir_json(document),
            headers={"Content-Type": FHIR_JSON, "Accept": FHIR_JSON},
        )

    def get(self, path: str, params: dict[str, Any] | None = None) -> str | None:
        """GET a FHIR search result."""
        return self._execute("GET", path, params=params, headers={"Accept": FHIR_JSON})

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            wait=wait_exponential(multiplier=1, min=self.retry.wait_min, max=self.retry.wait_max),
            retry=retry_if_exception_type((httpx.HTTPError, TtpResponseError)),
            reraise=True,
        )

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = self._client.request(method, url, auth=self._auth, **kwargs)
        if not response.is_success:
            raise TtpResponseError(response)
        return response

    def _execute(self, method: str, path: str, **kwargs) -> str | None:
        url = self.url(path)
        try:
            response = self._retrying()(self._send, method, url, **kwargs)
        except TtpResponseError as e:
            self.logger.error(
                "Trusted party system reached but request failed",
                url=url,
                status_code=e.response.status_code,
                response=e.response.text,
            )
            return None
        except httpx.HTTPError as e:
            self.logger.error("Trusted party request failed", url=url, reason=str(e))
            return None
        return response.text
