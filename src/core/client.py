import asyncio
import time
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Sequence, TypeVar

import httpx

from src.conversion.request_converter import MessageLike, compose_conversation
from src.conversion.response_converter import (
    build_fallback_stream,
    collect_deepseek_stream,
    convert_deepseek_stream_to_openai,
)
from src.conversion.sse import aiter_sse
from src.core.constants import Constants
from src.core.credentials import CredentialCache
from src.core.exceptions import (
    RETRYABLE_ERRORS,
    UpstreamProtocolError,
    UpstreamTransportError,
)
from src.core.logging import logger
from src.core.sync import KeyedLock

T = TypeVar("T")


class DeepSeekClient:
    """Async DeepSeek web chat client exposing OpenAI-style completions.

    The upstream keeps one conversation per credential, so every request
    clears that conversation and dispatches its prompt while holding a lock
    keyed by the refresh token. The lock is released once the upstream has
    answered with response headers; reading the body happens outside it.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 15,
        completion_timeout: float = 120,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        access_token_ttl: int = 3600,
        credential_cache_max_size: int = 0,
        fallback_message: str = "Service is temporarily unavailable, third-party response error",
        custom_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.completion_timeout = completion_timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.fallback_message = fallback_message
        self.custom_headers = custom_headers or {}

        # Merge custom headers with the browser-like defaults
        all_headers = {**Constants.UPSTREAM_HEADERS, **self.custom_headers}

        self.http_client = httpx.AsyncClient(
            base_url=base_url,
            headers=all_headers,
            timeout=timeout,
            transport=transport,
        )
        self.credentials = CredentialCache(
            self.http_client,
            ttl=access_token_ttl,
            timeout=timeout,
            max_size=credential_cache_max_size,
        )
        self.chat_lock = KeyedLock()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def create_chat_completion(
        self, model: str, messages: Sequence[MessageLike], refresh_token: str
    ) -> Dict[str, Any]:
        """Run a completion and return the full chat.completion object."""
        logger.info("Chat completion (model=%s, messages=%d)", model, len(messages))

        async def attempt() -> Dict[str, Any]:
            response = await self._dispatch_completion(model, messages, refresh_token)
            try:
                if not self._is_event_stream(response):
                    content_type = response.headers.get("content-type")
                    await self._drain_unexpected_body(response)
                    raise UpstreamProtocolError(
                        f"Stream response Content-Type invalid: {content_type}"
                    )

                stream_start = time.monotonic()
                try:
                    answer = await collect_deepseek_stream(
                        aiter_sse(response.aiter_lines()), model
                    )
                except httpx.TimeoutException as exc:
                    raise UpstreamTransportError(f"Stream read timed out: {exc!r}")
                except httpx.RequestError as exc:
                    raise UpstreamTransportError(f"Stream read failed: {exc!r}")
                logger.info(
                    "Stream has completed transfer %dms",
                    (time.monotonic() - stream_start) * 1000,
                )
                return answer
            finally:
                await response.aclose()

        return await self._call_with_retry(attempt)

    async def create_chat_completion_stream(
        self, model: str, messages: Sequence[MessageLike], refresh_token: str
    ) -> AsyncIterator[str]:
        """Dispatch a completion and return the outward SSE frame stream.

        Dispatch failures are retried and finally raised here, before any
        frame is produced. Once the stream is returned it never raises; it
        always ends with ``data: [DONE]``.
        """
        logger.info("Chat completion stream (model=%s, messages=%d)", model, len(messages))

        async def attempt() -> AsyncIterator[str]:
            response = await self._dispatch_completion(model, messages, refresh_token)
            if not self._is_event_stream(response):
                logger.error(
                    "Invalid response Content-Type: %s",
                    response.headers.get("content-type"),
                )
                try:
                    await self._drain_unexpected_body(response)
                finally:
                    await response.aclose()
                return build_fallback_stream(model, self.fallback_message)
            return self._relay_stream(response, model)

        return await self._call_with_retry(attempt)

    async def get_token_live_status(self, refresh_token: str) -> bool:
        """Probe whether a refresh token still yields a working session."""
        try:
            token = await self.credentials.acquire(refresh_token)
            response = await self._send(
                self.http_client.build_request(
                    "GET",
                    Constants.PATH_CURRENT_USER,
                    headers=self._auth_headers(token),
                    timeout=self.timeout,
                )
            )
            data = self.credentials.check_result(response, refresh_token)
            return bool(isinstance(data, dict) and data.get("token"))
        except Exception as exc:
            logger.warning("Token live check failed: %s", exc)
            return False

    async def _call_with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Upstream request failed after %d attempts: %s", attempt, e
                    )
                    raise
                logger.error(
                    "Stream response error (attempt %d/%d): %s",
                    attempt,
                    self.max_retries,
                    e,
                )
                logger.warning("Try again after %.1fs...", self.retry_delay)
                await asyncio.sleep(self.retry_delay)

    async def _dispatch_completion(
        self, model: str, messages: Sequence[MessageLike], refresh_token: str
    ) -> httpx.Response:
        """Clear the upstream conversation and open the completion stream."""
        async with self.chat_lock.acquire(refresh_token):
            await self._clear_context(model, refresh_token)

            token = await self.credentials.acquire(refresh_token)
            request = self.http_client.build_request(
                "POST",
                Constants.PATH_COMPLETIONS,
                json={
                    "message": compose_conversation(messages),
                    "stream": True,
                    "model_preference": None,
                    "model_class": model,
                    "temperature": 0,
                },
                headers=self._auth_headers(token),
                timeout=self.completion_timeout,
            )
            return await self._send(request, stream=True)

    async def _clear_context(self, model: str, refresh_token: str) -> None:
        token = await self.credentials.acquire(refresh_token)
        response = await self._send(
            self.http_client.build_request(
                "POST",
                Constants.PATH_CLEAR_CONTEXT,
                json={"model_class": model, "append_welcome_message": False},
                headers=self._auth_headers(token),
                timeout=self.timeout,
            )
        )
        self.credentials.check_result(response, refresh_token)

    async def _send(self, request: httpx.Request, stream: bool = False) -> httpx.Response:
        try:
            return await self.http_client.send(request, stream=stream)
        except httpx.TimeoutException:
            raise UpstreamTransportError(
                f"Upstream request timed out: {request.method} {request.url.path}"
            )
        except httpx.RequestError as exc:
            raise UpstreamTransportError(
                f"Upstream request failed: {request.method} {request.url.path}: {exc!r}"
            )

    async def _relay_stream(self, response: httpx.Response, model: str) -> AsyncIterator[str]:
        stream_start = time.monotonic()
        try:
            async for frame in convert_deepseek_stream_to_openai(
                aiter_sse(response.aiter_lines()), model
            ):
                yield frame
            logger.info(
                "Stream has completed transfer %dms",
                (time.monotonic() - stream_start) * 1000,
            )
        finally:
            await response.aclose()

    async def _drain_unexpected_body(self, response: httpx.Response) -> None:
        try:
            body = await response.aread()
        except httpx.RequestError as exc:
            logger.error("Failed to read unexpected upstream body: %s", exc)
            return
        logger.error(
            "Unexpected upstream response (status=%d): %s",
            response.status_code,
            body.decode("utf-8", errors="replace"),
        )

    @staticmethod
    def _is_event_stream(response: httpx.Response) -> bool:
        content_type = response.headers.get("content-type") or ""
        return Constants.EVENT_STREAM_MEDIA_TYPE in content_type

    @staticmethod
    def _auth_headers(token: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"}
