"""MCP wire types: tool descriptors, JSON-RPC envelopes, tools/call payloads.

Inbound data is validated into these models at the client/router boundary;
nothing past that boundary inspects raw dicts.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter

JsonDict = dict[str, Any]

# tools/call result as returned by the server, before payload decoding
McpContent = JsonDict


# ═══════════════════════════════════════════════════════════════════════════════
# Tool Descriptors
# ═══════════════════════════════════════════════════════════════════════════════


class McpTool(BaseModel):
    """Remote tool descriptor from ``tools/list``. Immutable once received."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: Annotated[str, Field(min_length=1)]
    description: str | None = None
    input_schema: JsonDict = Field(default_factory=lambda: {"type": "object"}, alias="inputSchema")


McpToolList = TypeAdapter(list[McpTool])


# ═══════════════════════════════════════════════════════════════════════════════
# JSON-RPC 2.0
# ═══════════════════════════════════════════════════════════════════════════════


class JsonRpcRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = "2.0"
    id: int
    method: str
    params: JsonDict = Field(default_factory=dict)


class JsonRpcError(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int | str = 0
    message: str = "Unknown JSON-RPC error"
    data: Any = None


class JsonRpcResponse(BaseModel):
    """Response envelope. ``result`` stays raw; callers validate it per method."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: int | str | None = None
    result: Any = None
    error: JsonRpcError | None = None
    has_result: bool = Field(default=False, exclude=True)

    @classmethod
    def parse(cls, body: object) -> JsonRpcResponse:
        """Validate a decoded body, remembering whether ``result`` was present at all."""
        if not isinstance(body, dict):
            raise ValueError(f"JSON-RPC response must be an object, got {type(body).__name__}")
        return cls.model_validate({**body, "has_result": "result" in body})


# ═══════════════════════════════════════════════════════════════════════════════
# tools/call Payloads
# ═══════════════════════════════════════════════════════════════════════════════


class ContentBlock(BaseModel):
    """One block of a tools/call result."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")
    uri: str | None = None


class _CallPayloadBase(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    content: list[ContentBlock] = Field(default_factory=list)

    def texts(self) -> list[str]:
        return [b.text for b in self.content if b.type == "text" and b.text]

    def to_dict(self) -> JsonDict:
        return self.model_dump(by_alias=True, exclude_none=True)


class NormalPayload(_CallPayloadBase):
    """Successful tool output."""

    is_error: Literal[False] | None = Field(default=None, alias="isError")


class ErrorPayload(_CallPayloadBase):
    """Transport-level success carrying a semantic tool failure (``isError: true``)."""

    is_error: Literal[True] = Field(default=True, alias="isError")


def _payload_discriminator(v: object) -> str:
    if isinstance(v, dict):
        return "error" if v.get("isError", v.get("is_error")) is True else "normal"
    return "error" if getattr(v, "is_error", None) is True else "normal"


CallPayload = Annotated[
    Annotated[NormalPayload, Tag("normal")] | Annotated[ErrorPayload, Tag("error")],
    Discriminator(_payload_discriminator),
]

_call_payload_adapter: TypeAdapter[NormalPayload | ErrorPayload] = TypeAdapter(CallPayload)


def decode_call_payload(raw: object) -> NormalPayload | ErrorPayload:
    """Decode a tools/call result. Non-dict results become text content.

    Raises pydantic.ValidationError for structurally invalid dicts.
    """
    if not isinstance(raw, dict):
        text = raw if isinstance(raw, str) else str(raw)
        return NormalPayload(content=[ContentBlock(type="text", text=text)])
    return _call_payload_adapter.validate_python(raw)


# ═══════════════════════════════════════════════════════════════════════════════
# Client Diagnostics
# ═══════════════════════════════════════════════════════════════════════════════


class McpClientState(BaseModel):
    """Last-known outcome of a client's requests. Diagnostic only."""

    model_config = ConfigDict(frozen=True)

    last_success_at: datetime | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    last_latency_ms: float | None = None
