"""Execution layer: send a synthesized request and normalize the outcome."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from typing import Any, Dict, Optional

import httpx

from .logging import redact_url
from .models import ApiCallResult, HttpRequest

logger = logging.getLogger(__name__)


class RequestCancelled(Exception):
    pass


class RestExecutor:
    """Runs one HTTP exchange per call. Never retries, never raises transport errors."""

    def __init__(
        self,
        timeout_seconds: Optional[float] = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def execute(
        self, request: HttpRequest, cancel_event: Optional[asyncio.Event] = None
    ) -> ApiCallResult:
        log_url = redact_url(request.url)
        logger.info("%s %s", request.method, log_url)
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                send = client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    content=request.body.encode("utf-8") if request.body is not None else None,
                )
                response = await _until_cancelled(send, cancel_event)
                data = _parse_body(response)
        except RequestCancelled:
            logger.warning("Request cancelled: %s %s", request.method, log_url)
            return ApiCallResult(
                success=False, error="Request cancelled", execution_time=_elapsed_ms(start)
            )
        except Exception as exc:
            logger.error("API call failed: %s %s (%s)", request.method, log_url, exc)
            return ApiCallResult(
                success=False,
                error=str(exc) or exc.__class__.__name__,
                execution_time=_elapsed_ms(start),
            )

        execution_time = _elapsed_ms(start)
        logger.info("Response status=%s time=%sms", response.status_code, execution_time)
        return ApiCallResult(
            success=response.is_success,
            status_code=response.status_code,
            data=data,
            error=None
            if response.is_success
            else f"HTTP {response.status_code}: {response.reason_phrase}",
            headers=_flatten_headers(response.headers),
            execution_time=execution_time,
        )


async def _until_cancelled(awaitable, cancel_event: Optional[asyncio.Event]) -> httpx.Response:  # type: ignore[no-untyped-def]
    if cancel_event is None:
        return await awaitable
    if cancel_event.is_set():
        awaitable.close()
        raise RequestCancelled()

    send = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({send, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        send.cancel()
        raise
    finally:
        waiter.cancel()
    if send.done():
        return send.result()

    send.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await send
    raise RequestCancelled()


def _parse_body(response: httpx.Response) -> Any:
    content_type = response.headers.get("content-type", "")
    if not response.content:
        return None
    if "json" in content_type.lower():
        try:
            return json.loads(response.text)
        except ValueError as exc:
            return f"Failed to parse response: {exc}"
    return response.text


def _flatten_headers(headers: httpx.Headers) -> Dict[str, str]:
    return {key: value for key, value in headers.items()}


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
