"""Scriptable fake MCP server on top of ``httpx.MockTransport``.

Script replies per JSON-RPC method, hand ``server.transport`` to a client,
router, or discovery, then assert on what was sent:

    >>> server = MockMcpServer()
    >>> server.on_list([{"name": "search", "inputSchema": {"type": "object"}}])
    >>> server.on_call(Reply.ok({"content": [{"type": "text", "text": "ok"}]}))
    >>> client = McpClient(config, transport=server.transport)
    >>> await client.call_tool("search", {"query": "hi"})
    >>> server.last_request("tools/call").params
    {'name': 'search', 'arguments': {'query': 'hi'}}
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any

import httpx
import orjson

from toolrelay.foundation.errors import JsonDict

_UNSET: Any = object()


@dataclass(slots=True, frozen=True)
class Reply:
    """One scripted response. Build with the classmethods."""

    result: Any = _UNSET
    error: JsonDict | None = None
    status: int = 200
    body: bytes | None = None
    raises: Exception | None = None
    hang: bool = False
    delay: float = 0.0

    @classmethod
    def ok(cls, result: Any, *, delay: float = 0.0) -> Reply:
        return cls(result=result, delay=delay)

    @classmethod
    def rpc_error(cls, code: int, message: str) -> Reply:
        return cls(error={"code": code, "message": message})

    @classmethod
    def http(cls, status: int) -> Reply:
        return cls(status=status, body=b"")

    @classmethod
    def raw(cls, body: bytes | str) -> Reply:
        return cls(body=body.encode() if isinstance(body, str) else body)

    @classmethod
    def fail(cls, exc: Exception) -> Reply:
        return cls(raises=exc)

    @classmethod
    def hanging(cls) -> Reply:
        return cls(hang=True)


@dataclass(slots=True, frozen=True)
class RecordedRequest:
    method: str
    id: int | str | None
    params: JsonDict
    headers: dict[str, str]
    url: str


@dataclass
class MockMcpServer:
    """Fake server; unscripted methods answer with JSON-RPC error -32601."""

    requests: list[RecordedRequest] = field(default_factory=list)
    _replies: dict[str, deque[Reply]] = field(default_factory=dict, repr=False)
    _tool_replies: dict[str, deque[Reply]] = field(default_factory=dict, repr=False)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    # ─────────────────────────────────────────────────────────────────
    # Scripting
    # ─────────────────────────────────────────────────────────────────

    def script(self, method: str, *replies: Reply) -> MockMcpServer:
        """Queue replies for ``method``; the last one repeats once the queue drains."""
        self._replies[method] = deque(replies)
        return self

    def on_list(self, tools: list[JsonDict] | Reply, *more: Reply) -> MockMcpServer:
        first = tools if isinstance(tools, Reply) else Reply.ok({"tools": tools})
        return self.script("tools/list", first, *more)

    def on_call(self, *replies: Reply, tool: str | None = None) -> MockMcpServer:
        """Script tools/call, optionally only for one remote tool name."""
        if tool is None:
            return self.script("tools/call", *replies)
        self._tool_replies[tool] = deque(replies)
        return self

    # ─────────────────────────────────────────────────────────────────
    # Inspection
    # ─────────────────────────────────────────────────────────────────

    def calls(self, method: str | None = None) -> list[RecordedRequest]:
        return [r for r in self.requests if method is None or r.method == method]

    def last_request(self, method: str | None = None) -> RecordedRequest:
        matching = self.calls(method)
        if not matching:
            raise AssertionError(f"No {method or 'MCP'} request was sent")
        return matching[-1]

    @property
    def call_count(self) -> int:
        return len(self.requests)

    # ─────────────────────────────────────────────────────────────────
    # Transport Handler
    # ─────────────────────────────────────────────────────────────────

    def _next_reply(self, method: str, params: JsonDict) -> Reply | None:
        queue = None
        if method == "tools/call":
            queue = self._tool_replies.get(str(params.get("name")))
        queue = queue or self._replies.get(method)
        if not queue:
            return None
        return queue.popleft() if len(queue) > 1 else queue[0]

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        payload = orjson.loads(await request.aread())
        method, params = payload.get("method", ""), payload.get("params") or {}
        self.requests.append(RecordedRequest(
            method=method, id=payload.get("id"), params=params, headers=dict(request.headers), url=str(request.url),
        ))

        reply = self._next_reply(method, params)
        if reply is None:
            reply = Reply.rpc_error(-32601, f"Method not found: {method}")
        if reply.delay:
            await asyncio.sleep(reply.delay)
        if reply.hang:
            await asyncio.Event().wait()
        if reply.raises is not None:
            raise reply.raises
        if reply.body is not None:
            return httpx.Response(reply.status, content=reply.body)

        envelope: JsonDict = {"jsonrpc": "2.0", "id": payload.get("id")}
        if reply.error is not None:
            envelope["error"] = reply.error
        elif reply.result is not _UNSET:
            envelope["result"] = reply.result
        return httpx.Response(reply.status, content=orjson.dumps(envelope), headers={"Content-Type": "application/json"})
