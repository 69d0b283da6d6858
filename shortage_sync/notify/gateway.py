"""HTTP push gateway provider (async, httpx).

The gateway takes FCM-style multicast requests:

    POST {PUSH_GATEWAY_URL}/send
    {"tokens": [...], "notification": {"title": ..., "body": ...}, "data": {...}}

and answers with one response per token, in request order:

    {"responses": [{"success": true}, {"success": false, "error": "..."}]}
"""

import asyncio

import httpx

from shortage_sync.config import PUSH_GATEWAY_TOKEN, PUSH_GATEWAY_URL
from shortage_sync.exceptions import DeliveryFailure
from shortage_sync.models.sync import PushResult
from shortage_sync.notify.templates import PushMessage
from shortage_sync.utils.logger import get_logger

logger = get_logger("shortage_sync.notify.gateway")

# Multicast requests carry at most this many tokens.
MAX_TOKENS_PER_REQUEST = 500


def _is_transient(e: Exception) -> bool:
    return isinstance(e, (httpx.TransportError, httpx.TimeoutException))


class HttpPushProvider:
    """Posts multicast requests to a push gateway; retries transient transport errors."""

    def __init__(
        self,
        base_url: str = PUSH_GATEWAY_URL,
        token: str = PUSH_GATEWAY_TOKEN,
        client: httpx.AsyncClient | None = None,
        max_attempts: int = 3,
        base_delay: float = 0.5,
    ):
        if not base_url:
            raise ValueError("PUSH_GATEWAY_URL must be set when PUSH_PROVIDER=http")
        self._url = f"{base_url.rstrip('/')}/send"
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client
        self._owns_client = client is None
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay
        logger.info("push_provider.init", provider="http", url=self._url)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, payload: dict) -> dict:
        for attempt in range(self._max_attempts):
            try:
                response = await self._get_client().post(self._url, json=payload, headers=self._headers)
                response.raise_for_status()
                return response.json()
            except Exception as e:
                if attempt < self._max_attempts - 1 and _is_transient(e):
                    delay = self._base_delay * (attempt + 1)
                    logger.warning(
                        "push_provider.retry",
                        attempt=attempt + 1,
                        delay_seconds=delay,
                        error=str(e),
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DeliveryFailure(self._url, f"{type(e).__name__}: {e}") from e
        raise DeliveryFailure(self._url, "no attempt made")

    async def send_multicast(self, tokens: list[str], message: PushMessage) -> PushResult:
        result = PushResult()
        for start in range(0, len(tokens), MAX_TOKENS_PER_REQUEST):
            chunk = tokens[start:start + MAX_TOKENS_PER_REQUEST]
            payload = {
                "tokens": chunk,
                "notification": {"title": message.title, "body": message.body},
                "data": message.data,
            }
            try:
                body = await self._post(payload)
            except DeliveryFailure as e:
                logger.error("push_provider.request_failed", tokens=len(chunk), error=e.reason)
                result.failure_count += len(chunk)
                result.failed_tokens.extend(chunk)
                result.errors.append(str(e))
                continue
            responses = body.get("responses") or []
            for i, token in enumerate(chunk):
                entry = responses[i] if i < len(responses) else {"success": False, "error": "missing response"}
                if entry.get("success"):
                    result.success_count += 1
                else:
                    result.failure_count += 1
                    result.failed_tokens.append(token)
                    result.errors.append(f"{token}: {entry.get('error', 'unknown error')}")
        logger.info(
            "push_provider.sent",
            provider="http",
            success=result.success_count,
            failed=result.failure_count,
        )
        return result
