"""
rpc/listener.py

Remote invocation listener: lets package processes call back into the dispatcher.

Packages connect over TCP and send newline-delimited JSON requests:

    {"id": 1, "method": "Ava.GetUser", "params": {"uid": 42}}

and receive one JSON line per request:

    {"id": 1, "result": {...}}    or    {"id": 1, "error": "..."}

Each accepted connection is served by its own asyncio task. A connection that
stays silent longer than the read timeout is closed. A failure to bind at
startup is logged and leaves the dispatcher running without the listener; a
failure while serving one connection is logged and never stops the accept loop.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from monitoring.metrics import ERROR_COUNT, RPC_CONNECTIONS
from services.user_resolver import UserResolver
from shared.models import FlexIdType, RpcRequest

logger = logging.getLogger(__name__)

MAX_LINE_BYTES = 64 * 1024

Handler = Callable[[Dict[str, Any]], Awaitable[Any]]


class RpcError(Exception):
    """A request the listener understood but cannot answer; sent back as `error`."""


class RemoteInvocationListener:
    """
    Accepts package connections for the lifetime of the process.

    Args:
        user_resolver (UserResolver): Backs the Ava.GetUser method
        host (str): Interface to bind
        port (int): Port to bind; 0 picks a free port (see `port` after start)
        timeout_s (float): Per-read timeout on each connection
    """

    def __init__(self, user_resolver: UserResolver, host: str = "0.0.0.0", port: int = 4001, timeout_s: float = 30.0):
        self.host = host
        self.port = port
        self.timeout_s = timeout_s
        self.user_resolver = user_resolver
        self._server: Optional[asyncio.AbstractServer] = None
        self.methods: Dict[str, Handler] = {
            "Ava.Ping": self._ping,
            "Ava.GetUser": self._get_user,
        }

    @property
    def is_serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def start(self) -> bool:
        """Bind and start accepting. Returns False (after logging) when binding fails."""
        logger.info(f"[RemoteInvocationListener] Booting rpc server on {self.host}:{self.port}")
        try:
            self._server = await asyncio.start_server(
                self._serve_connection, self.host, self.port, limit=MAX_LINE_BYTES
            )
        except OSError as e:
            ERROR_COUNT.labels(type='rpc', location='listener_bind').inc()
            logger.error(f"[RemoteInvocationListener] Could not listen on {self.host}:{self.port}: {e}")
            self._server = None
            return False

        sockets = self._server.sockets or []
        if sockets:
            self.port = sockets[0].getsockname()[1]
        logger.info(f"[RemoteInvocationListener] Listening on {self.host}:{self.port}")
        return True

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("[RemoteInvocationListener] Stopped")

    async def _serve_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        RPC_CONNECTIONS.inc()
        peer = writer.get_extra_info("peername")
        logger.debug(f"[RemoteInvocationListener] Accepted connection from {peer}")
        try:
            while True:
                try:
                    line = await asyncio.wait_for(reader.readline(), timeout=self.timeout_s)
                except asyncio.TimeoutError:
                    logger.info(f"[RemoteInvocationListener] Closing idle connection from {peer}")
                    break
                if not line:
                    break
                if not line.strip():
                    continue
                response = await self.dispatch(line)
                writer.write((json.dumps(response, default=str) + "\n").encode("utf-8"))
                await asyncio.wait_for(writer.drain(), timeout=self.timeout_s)
        except Exception as e:
            ERROR_COUNT.labels(type='rpc', location='listener_connection').inc()
            logger.error(f"[RemoteInvocationListener] Connection from {peer} failed: {e}", exc_info=True)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    async def dispatch(self, line: bytes) -> Dict[str, Any]:
        """Decode one request line, run the method and build the response object."""
        try:
            request = RpcRequest.model_validate(json.loads(line))
        except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError) as e:
            return {"id": None, "error": f"malformed request: {e}"}

        handler = self.methods.get(request.method)
        if handler is None:
            return {"id": request.id, "error": f"unknown method {request.method!r}"}
        try:
            return {"id": request.id, "result": await handler(request.params)}
        except RpcError as e:
            return {"id": request.id, "error": str(e)}

    async def _ping(self, params: Dict[str, Any]) -> str:
        return "pong"

    async def _get_user(self, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Resolve a user by `uid`, or by `flexid` + `flexidtype`. `None` means no such user."""
        try:
            uid = int(params.get("uid") or 0)
            flex_id_type = FlexIdType(int(params.get("flexidtype") or 0))
        except (TypeError, ValueError) as e:
            raise RpcError(f"invalid params: {e}") from None
        flex_id = str(params.get("flexid") or "")

        lookup = await asyncio.to_thread(self.user_resolver.lookup, uid, flex_id, flex_id_type)
        if lookup.is_failed:
            logger.error(f"[RemoteInvocationListener] User lookup failed: {lookup.error}")
            raise RpcError("user lookup failed")
        return lookup.value.to_dict() if lookup.is_found else None
