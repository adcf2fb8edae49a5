"""Translate an OpenAI chat completion stream into Anthropic Messages SSE events.

OpenAI chunks (one per ``data:`` line):
    data: {"choices":[{"delta":{"content":"Hel"},"index":0}]}
    data: {"choices":[{"delta":{"tool_calls":[{"index":0,"id":"call_1",...}]}}]}
    data: {"choices":[{"delta":{},"finish_reason":"tool_calls"}],"usage":{...}}
    data: [DONE]

Anthropic events:
    message_start, content_block_start (text, index 0), ping,
    content_block_delta*, content_block_stop*, message_delta, message_stop

The text block always occupies index 0. Tool calls get indices 1, 2, ... in
the order their id and name become known.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from sse_starlette.sse import ServerSentEvent

from chatbridge.core.errors import error_payload
from chatbridge.core.mapper import map_finish_reason, strict_loads

logger = logging.getLogger(__name__)

DONE = object()


@dataclass
class ToolCallState:
    """Per tool call bookkeeping, keyed by the upstream tool_calls index."""

    id: Optional[str] = None
    name: Optional[str] = None
    args_buffer: str = ""
    json_sent: bool = False
    block_index: Optional[int] = None
    started: bool = False


def _event(name: str, data: dict) -> dict:
    return {"event": name, "data": data}


def is_complete_json(text: str) -> bool:
    """Return True if text is a complete strict JSON document (no NaN or Infinity)."""
    try:
        strict_loads(text)
    except ValueError:
        return False
    return True


def format_sse(event: dict) -> str:
    """Render one event as ``event: <name>\\ndata: <json>\\n\\n``."""
    sse = ServerSentEvent(
        data=json.dumps(event["data"], separators=(",", ":"), ensure_ascii=False),
        event=event["event"],
        sep="\n",
    )
    return sse.encode().decode("utf-8")


def parse_stream_line(line: str) -> Any:
    """
    Parse one upstream SSE line.

    Returns the decoded chunk, ``DONE`` for the terminator, or None for lines
    that carry nothing usable (blank, comments, bad JSON).
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None

    data = line[5:].strip()
    if data == "[DONE]":
        return DONE

    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        logger.debug(f"Skipping unparseable stream frame: {data[:100]}")
        return None

    return chunk if isinstance(chunk, dict) else None


class StreamTranslator:
    """Stateful OpenAI -> Anthropic stream converter for one exchange.

    ``start``, ``feed``, ``finish`` and ``fail`` each return the list of
    events to write, in order. ``translate`` drives them over an async
    iterator of upstream lines and yields SSE text.
    """

    def __init__(self, model: str, message_id: Optional[str] = None):
        self.message_id = message_id or f"msg_{uuid.uuid4().hex[:24]}"
        self.model = model

        self.text_index = 0
        self.tool_block_counter = 0
        self.tool_calls: dict[int, ToolCallState] = {}

        self.final_stop_reason = "end_turn"
        self.usage = {
            "input_tokens": 0,
            "output_tokens": 0,
            "cache_read_input_tokens": 0,
        }

    def start(self) -> list[dict]:
        return [
            _event("message_start", {
                "type": "message_start",
                "message": {
                    "id": self.message_id,
                    "type": "message",
                    "role": "assistant",
                    "model": self.model,
                    "content": [],
                    "stop_reason": None,
                    "stop_sequence": None,
                    "usage": {"input_tokens": 0, "output_tokens": 0},
                },
            }),
            _event("content_block_start", {
                "type": "content_block_start",
                "index": self.text_index,
                "content_block": {"type": "text", "text": ""},
            }),
            _event("ping", {"type": "ping"}),
        ]

    def feed(self, chunk: dict) -> list[dict]:
        """Apply one upstream chunk."""
        events = []

        usage = chunk.get("usage")
        if usage:
            prompt_details = usage.get("prompt_tokens_details") or {}
            self.usage = {
                "input_tokens": usage.get("prompt_tokens") or 0,
                "output_tokens": usage.get("completion_tokens") or 0,
                "cache_read_input_tokens": prompt_details.get("cached_tokens") or 0,
            }

        choices = chunk.get("choices")
        if not choices:
            return events

        choice = choices[0]
        delta = choice.get("delta") or {}

        if delta.get("content") is not None:
            events.append(_event("content_block_delta", {
                "type": "content_block_delta",
                "index": self.text_index,
                "delta": {"type": "text_delta", "text": delta["content"]},
            }))

        for tc_delta in delta.get("tool_calls") or []:
            events.extend(self._feed_tool_call(tc_delta))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            self.final_stop_reason = map_finish_reason(finish_reason)

        return events

    def _feed_tool_call(self, tc_delta: dict) -> list[dict]:
        events = []
        tc_index = tc_delta.get("index") or 0
        function = tc_delta.get("function") or {}

        tool_call = self.tool_calls.get(tc_index)
        if tool_call is None:
            tool_call = self.tool_calls[tc_index] = ToolCallState()

        if tc_delta.get("id"):
            tool_call.id = tc_delta["id"]
        if function.get("name"):
            tool_call.name = function["name"]

        if tool_call.id and tool_call.name and not tool_call.started:
            self.tool_block_counter += 1
            tool_call.block_index = self.text_index + self.tool_block_counter
            tool_call.started = True

            events.append(_event("content_block_start", {
                "type": "content_block_start",
                "index": tool_call.block_index,
                "content_block": {
                    "type": "tool_use",
                    "id": tool_call.id,
                    "name": tool_call.name,
                    "input": {},
                },
            }))

        arguments = function.get("arguments")
        if arguments and tool_call.started:
            tool_call.args_buffer += arguments

            # Arguments are surfaced once, as soon as the buffer is valid JSON.
            # Fragments arriving after that are buffered but never emitted.
            if is_complete_json(tool_call.args_buffer) and not tool_call.json_sent:
                events.append(_event("content_block_delta", {
                    "type": "content_block_delta",
                    "index": tool_call.block_index,
                    "delta": {
                        "type": "input_json_delta",
                        "partial_json": tool_call.args_buffer,
                    },
                }))
                tool_call.json_sent = True

        return events

    def finish(self) -> list[dict]:
        events = [
            _event("content_block_stop", {
                "type": "content_block_stop",
                "index": self.text_index,
            }),
        ]

        for tool_call in self.tool_calls.values():
            if tool_call.started and tool_call.block_index is not None:
                events.append(_event("content_block_stop", {
                    "type": "content_block_stop",
                    "index": tool_call.block_index,
                }))

        events.append(_event("message_delta", {
            "type": "message_delta",
            "delta": {"stop_reason": self.final_stop_reason, "stop_sequence": None},
            "usage": dict(self.usage),
        }))
        events.append(_event("message_stop", {"type": "message_stop"}))
        return events

    def fail(self, error: BaseException) -> list[dict]:
        return [_event("error", error_payload(f"Streaming error: {error}"))]

    async def translate(self, lines: AsyncIterator[str]) -> AsyncIterator[str]:
        """Yield Anthropic SSE text for an async iterator of upstream lines."""
        for event in self.start():
            yield format_sse(event)

        try:
            async for line in lines:
                chunk = parse_stream_line(line)
                if chunk is DONE:
                    break
                if chunk is None:
                    continue

                for event in self.feed(chunk):
                    yield format_sse(event)

        except Exception as e:
            logger.exception(f"Streaming error: {e}")
            for event in self.fail(e):
                yield format_sse(event)
            return

        for event in self.finish():
            yield format_sse(event)
