"""Shared httpx plumbing for server-sent-event chat providers."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

import httpx

from agent_console.cancellation import CancelToken
from agent_console.errors import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 60.0
DEFAULT_USER_AGENT = "agent-console/0.1"
_DEADLINE_GRACE_SECONDS = 0.25


class ProviderHttpClient:
    """httpx client wrapper with provider naming, timeouts and cancellable streams."""

    def __init__(
        self,
        *,
        provider_name: str,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.provider_name = provider_name
        base_headers = {"User-Agent": DEFAULT_USER_AGENT}
        if headers:
            base_headers.update(headers)
        self._timeout = httpx.Timeout(timeout_seconds, connect=10.0)
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=self._timeout,
            headers=base_headers,
            transport=transport,
        )

    def get_json(self, path: str, token: CancelToken) -> dict[str, Any]:
        """GET ``path`` and decode the JSON body.

        Socket waits end shortly after the token's deadline, and canceling the
        token closes the response so a blocked body read returns at once.
        """

        if token.cancelled:
            raise self._canceled()
        request = self._client.build_request("GET", path, timeout=self._timeout_for(token))
        try:
            response = self._client.send(request, stream=True)
            token.add_callback(response.close)
            try:
                response.read()
            finally:
                response.close()
        except (httpx.HTTPError, httpx.StreamError) as error:
            if token.cancelled:
                raise self._canceled() from error
            raise ProviderError(
                f"{self.provider_name}: {error}",
                provider=self.provider_name,
            ) from error
        except Exception as error:
            # Closing the response from another thread can surface as arbitrary
            # transport errors mid-read.
            if token.cancelled:
                raise self._canceled() from error
            raise
        if token.cancelled:
            raise self._canceled()
        if response.status_code >= 300:
            raise ProviderError(
                f"{self.provider_name} error: {response.text.strip()}",
                provider=self.provider_name,
                status_code=response.status_code,
            )
        return response.json()

    def open_stream(
        self,
        path: str,
        payload: dict[str, Any],
        token: CancelToken,
        *,
        label: str,
    ) -> httpx.Response:
        """POST ``payload`` and return the open streaming response.

        Canceling ``token`` closes the response, which aborts a blocked read.
        """

        request = self._client.build_request("POST", path, json=payload)
        try:
            response = self._client.send(request, stream=True)
        except httpx.HTTPError as error:
            raise ProviderError(
                f"{self.provider_name}: {error}",
                provider=self.provider_name,
            ) from error
        if response.status_code >= 300:
            body = response.read().decode("utf-8", errors="replace").strip()
            response.close()
            raise ProviderError(
                f"{self.provider_name} {label} error: {body}",
                provider=self.provider_name,
                status_code=response.status_code,
            )
        token.add_callback(response.close)
        return response

    def _timeout_for(self, token: CancelToken) -> httpx.Timeout:
        remaining = token.remaining()
        if remaining is None or remaining + _DEADLINE_GRACE_SECONDS >= self._timeout.read:
            return self._timeout
        return httpx.Timeout(remaining + _DEADLINE_GRACE_SECONDS)

    def _canceled(self) -> ProviderError:
        return ProviderError(
            f"{self.provider_name}: request canceled",
            provider=self.provider_name,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ProviderHttpClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def iter_sse_payloads(
    response: httpx.Response,
    token: CancelToken,
) -> Iterator[str | Exception]:
    """Yield the ``data:`` payloads of an SSE response.

    A read failure is yielded (not raised) as the last item unless the stream
    was closed by cancellation, in which case iteration just stops.
    """

    try:
        for line in response.iter_lines():
            if token.cancelled:
                return
            stripped = line.strip()
            if not stripped.startswith("data:"):
                continue
            yield stripped[len("data:") :].strip()
    except (httpx.HTTPError, httpx.StreamError) as error:
        if token.cancelled:
            return
        logger.warning("Stream read failed: %s", error)
        yield error
    except Exception:
        # Closing the response from another thread can surface as arbitrary
        # transport errors mid-read.
        if token.cancelled:
            return
        raise
    finally:
        response.close()


def decode_event(payload: str) -> dict[str, Any]:
    """Decode one SSE JSON payload."""

    decoded = json.loads(payload)
    if not isinstance(decoded, dict):
        raise ValueError(f"unexpected stream payload: {payload[:80]!r}")
    return decoded
