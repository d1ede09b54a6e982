import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, List, Optional

import httpx

from src.core.constants import Constants
from src.core.exceptions import (
    UpstreamAuthError,
    UpstreamProtocolError,
    UpstreamRequestError,
    UpstreamTransportError,
)
from src.core.logging import logger
from src.core.sync import SingleFlight

BEARER_PREFIX_PATTERN = re.compile(r"^\s*bearer\b\s*", re.IGNORECASE)


@dataclass
class CredentialPair:
    refresh_token: str
    access_token: str
    expires_at: float

    def expired(self, now: Optional[float] = None) -> bool:
        return (now if now is not None else time.time()) > self.expires_at


def split_tokens(authorization: Optional[str]) -> List[str]:
    """Split an Authorization header value into upstream refresh tokens."""
    if not authorization:
        return []
    value = BEARER_PREFIX_PATTERN.sub("", authorization, count=1)
    return [token.strip() for token in value.split(",") if token.strip()]


class CredentialCache:
    """Maps refresh tokens to cached access tokens.

    Refreshes are single-flight per refresh token. With ``max_size`` of 0 the
    cache keeps every token it has ever seen; a positive ``max_size`` evicts
    the least recently used entry.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        ttl: int = 3600,
        timeout: float = 15,
        max_size: int = 0,
    ):
        self.http_client = http_client
        self.ttl = ttl
        self.timeout = timeout
        self.max_size = max_size
        self._entries: "OrderedDict[str, CredentialPair]" = OrderedDict()
        self._refreshes = SingleFlight()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, refresh_token: str) -> bool:
        return refresh_token in self._entries

    async def acquire(self, refresh_token: str) -> str:
        entry = self._entries.get(refresh_token)
        if entry is not None and not entry.expired():
            self._entries.move_to_end(refresh_token)
            return entry.access_token

        entry = await self._refreshes.do(
            refresh_token, lambda: self._refresh(refresh_token)
        )
        return entry.access_token

    def invalidate(self, refresh_token: str) -> None:
        if self._entries.pop(refresh_token, None) is not None:
            logger.info("Evicted credential for refresh token %s", _mask(refresh_token))

    def check_result(self, response: httpx.Response, refresh_token: str) -> Any:
        """Unwrap the upstream ``{code, data, msg}`` envelope."""
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            raise UpstreamProtocolError(
                f"[Request deepseek failed]: invalid response body "
                f"(status={response.status_code})"
            )

        if not isinstance(body, dict):
            return body
        code = body.get("code")
        if isinstance(code, bool) or not isinstance(code, (int, float)):
            return body
        if code == Constants.UPSTREAM_CODE_OK:
            return body.get("data")

        message = f"[Request deepseek failed]: {body.get('msg')}"
        if code == Constants.UPSTREAM_CODE_TOKEN_INVALID:
            self.invalidate(refresh_token)
            raise UpstreamAuthError(message, data={"upstream_code": code})
        raise UpstreamRequestError(message, data={"upstream_code": code})

    async def _refresh(self, refresh_token: str) -> CredentialPair:
        logger.info("Refresh token: %s", _mask(refresh_token))
        try:
            response = await self.http_client.get(
                Constants.PATH_CURRENT_USER,
                headers={"Authorization": f"Bearer {refresh_token}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTransportError(f"Token refresh timed out: {exc}")
        except httpx.TransportError as exc:
            raise UpstreamTransportError(f"Token refresh failed: {exc}")

        data = self.check_result(response, refresh_token)
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            raise UpstreamAuthError("[Request deepseek failed]: no token in refresh response")

        entry = CredentialPair(
            refresh_token=refresh_token,
            access_token=token,
            expires_at=time.time() + self.ttl,
        )
        self._store(entry)
        logger.info("Refresh successful")
        return entry

    def _store(self, entry: CredentialPair) -> None:
        self._entries[entry.refresh_token] = entry
        self._entries.move_to_end(entry.refresh_token)
        if self.max_size > 0:
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Credential cache full, dropped %s", _mask(evicted))


def _mask(token: str) -> str:
    if len(token) <= 8:
        return "***"
    return f"{token[:4]}...{token[-4:]}"
