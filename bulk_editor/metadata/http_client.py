import threading
import uuid
from collections.abc import Iterable

import httpx

from bulk_editor.logging.logger import Log
from bulk_editor.metadata.base import BaseMetadataClient, normalize_identifiers
from bulk_editor.metadata.models import LookupResult
from bulk_editor.metadata.parser import parse_lookup_response
from bulk_editor.metadata.retry import RetryExecutor
from bulk_editor.processor.exceptions import CommunicationError

_MAX_ERROR_BODY_CHARS = 2000


class HttpMetadataClient(BaseMetadataClient):
    """Metadata client that posts batched lookup ids to a JSON endpoint.

    One POST per ``lookup`` call. Calls share a bounded permit pool so that
    many documents looking up concurrently never hold more than
    ``max_concurrent_requests`` connections.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        log: Log,
        retry: RetryExecutor,
        timeout_seconds: float = 30,
        max_concurrent_requests: int = 10,
        api_key: str = "",
        user_agent: str = "BulkEditor/1.0",
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not endpoint.strip():
            raise ValueError("metadata_api_url is required for metadata_provider=http")
        if max_concurrent_requests < 1:
            raise ValueError("max_concurrent_requests must be at least 1")
        self._endpoint = endpoint.strip()
        self._log = log
        self._retry = retry
        self._timeout_seconds = timeout_seconds
        self._permits = threading.BoundedSemaphore(max_concurrent_requests)
        self._api_key = api_key
        self._user_agent = user_agent
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def lookup(self, identifiers: Iterable[str]) -> LookupResult:
        requested = normalize_identifiers(identifiers)
        if not requested:
            return LookupResult()
        payload = self._retry.execute(
            lambda: self._post(requested),
            operation_name=f"Metadata lookup of {len(requested)} ids",
        )
        result = parse_lookup_response(payload, requested)
        self._log.info(
            f"Metadata lookup: {len(result.found)} found, {len(result.expired)} expired, "
            f"{len(result.missing)} missing"
        )
        return result

    def _post(self, requested: list[str]) -> object:
        correlation_id = str(uuid.uuid4())
        with self._permits:
            self._log.debug(
                f"POST {self._endpoint} with {len(requested)} ids (correlation {correlation_id})"
            )
            try:
                with httpx.Client(
                    timeout=self._timeout_seconds,
                    transport=self._transport,
                ) as client:
                    response = client.post(
                        self._endpoint,
                        json={"Lookup_ID": requested},
                        headers=self._headers(correlation_id),
                    )
            except httpx.TimeoutException as exc:
                raise CommunicationError(
                    f"Metadata request timed out after {self._timeout_seconds}s",
                    endpoint=self._endpoint,
                ) from exc
            except httpx.HTTPError as exc:
                raise CommunicationError(
                    f"Metadata request failed: {exc}",
                    endpoint=self._endpoint,
                ) from exc

        if not response.is_success:
            raise CommunicationError(
                f"Metadata service returned HTTP {response.status_code}",
                endpoint=self._endpoint,
                status_code=response.status_code,
                response_body=response.text[:_MAX_ERROR_BODY_CHARS],
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CommunicationError(
                f"Metadata service returned invalid JSON: {exc}",
                endpoint=self._endpoint,
                status_code=response.status_code,
                response_body=response.text[:_MAX_ERROR_BODY_CHARS],
            ) from exc

    def _headers(self, correlation_id: str) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self._user_agent,
            "X-Correlation-ID": correlation_id,
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers
