"""Duplex session with the Deriv websocket API: authorize, subscribe, failover and reconnect."""

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Protocol

import websockets
from pydantic import ValidationError
from websockets.exceptions import WebSocketException

from tickbot.config import settings
from tickbot.exceptions import NotConnectedError
from tickbot.schemas.deriv import (
    Envelope,
    authorize_request,
    balance_subscription,
    forget_all,
    ticks_subscription,
)
from tickbot.schemas.engine import ConnectionState

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (OSError, WebSocketException, asyncio.TimeoutError)


class ConnectionOutcome(str, Enum):
    CLOSED = "closed"  # caller asked to stop
    INVALID_TOKEN = "invalid_token"
    EXHAUSTED = "exhausted"  # every endpoint candidate failed


class ConnectionHandler(Protocol):
    def on_connection_state(self, state: ConnectionState) -> None: ...

    async def on_authorized(self, envelope: Envelope) -> None: ...

    async def on_message(self, envelope: Envelope) -> None: ...

    def on_reconnecting(self, url: str, attempt: int) -> None: ...

    def on_malformed(self, reason: str) -> None: ...


def endpoint_urls(endpoints: list[str], app_id: int) -> list[str]:
    return [f"{endpoint}?app_id={app_id}" for endpoint in endpoints]


class DerivConnection:
    def __init__(
        self,
        token: str,
        symbol: str,
        endpoints: list[str] | None = None,
        app_id: int | None = None,
        reconnect_delay: float | None = None,
        connect: Any = websockets.connect,
    ) -> None:
        self._token = token
        self._symbol = symbol
        self._urls = endpoint_urls(
            endpoints if endpoints is not None else settings.deriv_ws_endpoints,
            app_id if app_id is not None else settings.deriv_app_id,
        )
        if not self._urls:
            raise ValueError("at least one endpoint is required")
        self._reconnect_delay = (
            reconnect_delay if reconnect_delay is not None else settings.reconnect_delay_seconds
        )
        self._connect = connect
        self._ws: Any = None
        self._req_id = 0
        self._stop = asyncio.Event()
        self._invalid_token = False
        self._authorized = False
        self._handler: ConnectionHandler | None = None

    @property
    def urls(self) -> list[str]:
        return list(self._urls)

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    async def send(self, payload: dict) -> int:
        """Fire-and-forget request; returns the req_id the response will echo."""
        if self._ws is None:
            raise NotConnectedError("no open Deriv connection")
        self._req_id += 1
        message = {**payload, "req_id": self._req_id}
        try:
            await self._ws.send(json.dumps(message))
        except WebSocketException as e:
            raise NotConnectedError(str(e)) from e
        return self._req_id

    async def run(self, handler: ConnectionHandler) -> ConnectionOutcome:
        """
        Connect and pump messages until stopped.

        Each outage may retry once per endpoint candidate, rotating through the list with a
        fixed delay; a session that re-authorizes resets the count.
        """
        self._handler = handler
        index = 0
        failures = 0
        while not self._stop.is_set():
            url = self._urls[index]
            self._authorized = False
            self._set_state(ConnectionState.CONNECTING)
            try:
                async with self._connect(url) as ws:
                    self._ws = ws
                    if self._stop.is_set():
                        # close() ran during the handshake
                        await ws.close()
                        break
                    await self._session(ws, handler)
            except TRANSPORT_ERRORS as e:
                logger.warning("Deriv connection error on %s: %s", url, e)
            finally:
                self._ws = None
                self._set_state(ConnectionState.DISCONNECTED)

            if self._invalid_token:
                return ConnectionOutcome.INVALID_TOKEN
            if self._stop.is_set():
                break

            if self._authorized:
                failures = 0
            failures += 1
            if failures > len(self._urls):
                logger.error("All %d Deriv endpoints failed; giving up", len(self._urls))
                return ConnectionOutcome.EXHAUSTED
            index = (index + 1) % len(self._urls)
            handler.on_reconnecting(self._urls[index], failures)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._reconnect_delay)
            except asyncio.TimeoutError:
                pass
        return ConnectionOutcome.CLOSED

    async def close(self) -> None:
        """Caller-initiated clean close: unsubscribe streams, then close the socket."""
        self._stop.set()
        ws = self._ws
        if ws is None:
            return
        try:
            await self.send(forget_all("ticks"))
            await self.send(forget_all("proposal_open_contract"))
        except NotConnectedError:
            pass
        await ws.close()

    async def _session(self, ws: Any, handler: ConnectionHandler) -> None:
        if self._stop.is_set():
            return
        self._set_state(ConnectionState.AUTHENTICATING)
        await self.send(authorize_request(self._token))

        async for raw in ws:
            if self._stop.is_set():
                return
            envelope = self._parse(raw)
            if envelope is None:
                continue
            if envelope.msg_type == "authorize":
                if not await self._on_authorize(ws, envelope, handler):
                    return
                continue
            await handler.on_message(envelope)

    async def _on_authorize(self, ws: Any, envelope: Envelope, handler: ConnectionHandler) -> bool:
        if envelope.error is not None:
            if envelope.is_invalid_credential:
                logger.error("Deriv rejected the token: %s", envelope.error.message)
                self._invalid_token = True
                self._stop.set()
            else:
                logger.warning("Authorization failed: %s", envelope.error.message)
            await ws.close()
            return False

        if self._stop.is_set():
            await ws.close()
            return False

        self._authorized = True
        await self.send(balance_subscription())
        await self.send(ticks_subscription(self._symbol))
        self._set_state(ConnectionState.SUBSCRIBED)
        logger.info("Authorized; subscribed to balance and %s ticks", self._symbol)
        await handler.on_authorized(envelope)
        return True

    def _parse(self, raw: str | bytes) -> Envelope | None:
        try:
            return Envelope.model_validate(json.loads(raw))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
            logger.warning("Dropped malformed message: %s", e)
            if self._handler is not None:
                self._handler.on_malformed(str(e))
            return None

    def _set_state(self, state: ConnectionState) -> None:
        if self._handler is not None:
            self._handler.on_connection_state(state)
