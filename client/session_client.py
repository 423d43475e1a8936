"""
Cookie-session HTTP client with single-flight token refresh.

SessionClient wraps one ``httpx.AsyncClient`` whose cookie jar holds the
session cookies. When a request comes back 401 it refreshes the session
once and replays the request. Requests that fail with 401 while a refresh is
already running are parked in a FIFO queue and replayed after it succeeds,
so at most one refresh call is ever in flight.

Every replayed request carries the ``auth_retried`` extension and is never
retried again; a second 401 is handed back to the caller unchanged. When the
refresh fails, every parked request and the triggering one raise
SessionExpiredError and the ``on_session_expired`` hook runs once.

The refresh runs in a task owned by the client rather than by the request
that triggered it. A caller cancelled while waiting is skipped on replay and
the others are still served; closing the client cancels an in-flight
refresh and every waiter with it.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from shared.logging import get_logger

log = get_logger(__name__)

AUTH_RETRIED = "auth_retried"

SessionExpiredHook = Callable[[], Union[None, Awaitable[None]]]
RequestFactory = Callable[[], httpx.Request]


class RefreshState(enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class SessionExpiredError(Exception):
    """The session could not be refreshed; the user has to sign in again."""

    def __init__(
        self,
        message: str = "Session expired, please sign in again",
        *,
        response: Optional[httpx.Response] = None,
    ) -> None:
        super().__init__(message)
        self.response = response


@dataclass
class _PendingReplay:
    build: RequestFactory
    future: asyncio.Future


def is_auth_retried(request: httpx.Request) -> bool:
    return bool(request.extensions.get(AUTH_RETRIED))


class SessionClient:
    def __init__(
        self,
        base_url: str,
        refresh_path: str,
        *,
        on_session_expired: Optional[SessionExpiredHook] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, transport=transport, timeout=timeout
        )
        self._refresh_path = refresh_path
        self._on_session_expired = on_session_expired
        self._lock = asyncio.Lock()
        self._state = RefreshState.IDLE
        self._pending: deque[_PendingReplay] = deque()
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def cookies(self) -> httpx.Cookies:
        return self._client.cookies

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        # Rebuilt on replay so the refreshed cookies from the jar are sent
        def build() -> httpx.Request:
            return self._client.build_request(method, url, **kwargs)

        response = await self._client.send(build())
        if response.status_code != 401 or is_auth_retried(response.request):
            return response
        return await self._handle_unauthorized(build)

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await self._client.aclose()

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    # ── Refresh coordination ─────────────────────────────────────────────────

    async def _handle_unauthorized(self, build: RequestFactory) -> httpx.Response:
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        item = _PendingReplay(build, future)
        async with self._lock:
            if self._state is RefreshState.REFRESHING:
                self._pending.append(item)
                log.debug("request_queued_for_refresh", queued=len(self._pending))
            else:
                self._state = RefreshState.REFRESHING
                self._refresh_task = asyncio.create_task(self._run_refresh(item))
        return await future

    async def _run_refresh(self, trigger: _PendingReplay) -> None:
        """Refresh once, then settle the queued requests and finally the trigger.

        Runs as its own task, so a caller that gives up waiting neither stalls
        the refresh nor the other callers. Whatever happens, the state is back
        to IDLE on exit and no waiting future is left unresolved.
        """
        items = [trigger]
        drained = False
        try:
            try:
                await self._refresh()
            except SessionExpiredError as e:
                items = await self._finish_refresh() + items
                drained = True
                for item in items:
                    if not item.future.done():
                        item.future.set_exception(
                            e if item is trigger
                            else SessionExpiredError(response=e.response)
                        )
                log.warning("session_refresh_failed", rejected=len(items))
                try:
                    await self._notify_session_expired()
                except Exception:
                    log.exception("session_expired_hook_failed")
                return

            items = await self._finish_refresh() + items
            drained = True
            log.info("session_refreshed", replayed=len(items))
            for item in items:
                await self._settle_replay(item)
        finally:
            if not drained:
                items = await self._finish_refresh() + items
            for item in items:
                item.future.cancel()

    async def _settle_replay(self, item: _PendingReplay) -> None:
        if item.future.done():
            return
        try:
            response = await self._replay(item.build)
        except Exception as exc:
            if not item.future.done():
                item.future.set_exception(exc)
            return
        if not item.future.done():
            item.future.set_result(response)

    async def _refresh(self) -> None:
        try:
            response = await self._client.post(self._refresh_path)
        except httpx.HTTPError as e:
            raise SessionExpiredError() from e
        if response.is_error:
            raise SessionExpiredError(response=response)

    async def _finish_refresh(self) -> list[_PendingReplay]:
        async with self._lock:
            pending = list(self._pending)
            self._pending.clear()
            self._state = RefreshState.IDLE
        return pending

    async def _replay(self, build: RequestFactory) -> httpx.Response:
        request = build()
        request.extensions[AUTH_RETRIED] = True
        return await self._client.send(request)

    async def _notify_session_expired(self) -> None:
        if self._on_session_expired is None:
            return
        result = self._on_session_expired()
        if inspect.isawaitable(result):
            await result
