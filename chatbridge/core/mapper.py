"""Request/response mapping between Anthropic Messages and OpenAI Chat Completions."""

import json
import logging
import uuid
from typing import Any, Optional, Union

from chatbridge.core.errors import EmptyChoicesError
from chatbridge.core.models import (
    AnthropicMessage,
    ImageContentBlock,
    MessageRequest,
    TextContentBlock,
    ToolChoice,
    ToolDefinition,
    ToolResultContentBlock,
    ToolUseContentBlock,
    SystemTextBlock,
)

logger = logging.getLogger(__name__)

DEFAULT_TARGET_MODEL = "moonshotai/kimi-k2-instruct"

# Ordered: first substring match wins
MODEL_MAP = (
    ("claude-3-5-sonnet", "llama-3.3-70b-versatile"),
    ("claude-3-haiku", "llama-3.1-8b-instant"),
    ("claude-3-sonnet", "llama-3.1-70b-versatile"),
)

MIN_MAX_TOKENS = 1
MAX_MAX_TOKENS = 8192

NO_CONTENT_PLACEHOLDER = "No content provided"
UNPARSEABLE_PLACEHOLDER = "Unparseable content"

FINISH_REASON_MAP = {
    "stop": "end_turn",
    "length": "max_tokens",
    "tool_calls": "tool_use",
    "content_filter": "end_turn",
}


def map_model(model: str, default_model: str = DEFAULT_TARGET_MODEL) -> str:
    """Map an Anthropic model name to an OpenAI-compatible one."""
    for fragment, target in MODEL_MAP:
        if fragment in model:
            return target
    return default_model


def map_finish_reason(finish_reason: Optional[str]) -> str:
    """Map an OpenAI finish_reason to an Anthropic stop_reason."""
    return FINISH_REASON_MAP.get(finish_reason, "end_turn")


def clamp_max_tokens(value: int) -> int:
    return min(max(value, MIN_MAX_TOKENS), MAX_MAX_TOKENS)


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant: {name}")


def strict_loads(text: str) -> Any:
    """json.loads that refuses NaN and Infinity like a strict JSON parser."""
    return json.loads(text, parse_constant=_reject_constant)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _text_of(item: dict) -> str:
    text = item.get("text") or ""
    return text if isinstance(text, str) else str(text)


class RequestMapper:
    """Mapper for Anthropic requests into OpenAI chat completion requests."""

    @staticmethod
    def map_request(
        request: MessageRequest,
        target_model: Optional[str] = None,
        default_model: str = DEFAULT_TARGET_MODEL,
    ) -> dict:
        """
        Convert an Anthropic message request to an OpenAI chat completion request.

        A user message carrying tool_result blocks right after an assistant
        message is folded into that assistant turn as "tool" role messages.
        """
        openai_messages = []

        system_text = RequestMapper.map_system_prompt(request.system)
        if system_text:
            openai_messages.append({"role": "system", "content": system_text})

        messages = request.messages
        i = 0
        while i < len(messages):
            msg = messages[i]

            if msg.role == "user":
                openai_messages.append(RequestMapper.map_user_message(msg))

            elif msg.role == "assistant":
                openai_messages.append(RequestMapper.map_assistant_message(msg))

                if i + 1 < len(messages) and RequestMapper.has_tool_results(messages[i + 1]):
                    i += 1
                    openai_messages.extend(RequestMapper.map_tool_results(messages[i]))

            i += 1

        openai_request = {
            "model": target_model or map_model(request.model, default_model),
            "messages": openai_messages,
            "max_tokens": clamp_max_tokens(request.max_tokens),
        }

        if request.temperature is not None:
            openai_request["temperature"] = request.temperature
        if request.stream is not None:
            openai_request["stream"] = request.stream
        if request.stop_sequences is not None:
            openai_request["stop"] = request.stop_sequences
        if request.top_p is not None:
            openai_request["top_p"] = request.top_p

        if request.tools is not None:
            openai_tools = RequestMapper.map_tools(request.tools)
            if openai_tools:
                openai_request["tools"] = openai_tools

        if request.tool_choice:
            openai_request["tool_choice"] = RequestMapper.map_tool_choice(request.tool_choice)

        return openai_request

    @staticmethod
    def map_system_prompt(
        system: Union[str, list[SystemTextBlock], None],
    ) -> Optional[str]:
        """Flatten the system prompt; returns None when there is nothing left."""
        if not system:
            return None

        if isinstance(system, str):
            text = system
        else:
            text = "\n\n".join(block.text for block in system if block.type == "text")

        return text.strip() or None

    @staticmethod
    def has_tool_results(msg: AnthropicMessage) -> bool:
        return (
            msg.role == "user"
            and isinstance(msg.content, list)
            and any(isinstance(block, ToolResultContentBlock) for block in msg.content)
        )

    @staticmethod
    def map_user_message(msg: AnthropicMessage) -> dict:
        """
        Convert a user message.

        Text and base64 image blocks become OpenAI content parts; everything
        else is dropped. A lone text part collapses to a plain string.
        """
        if msg.content is None or isinstance(msg.content, str):
            return {"role": "user", "content": msg.content or ""}

        parts = []
        for block in msg.content:
            if isinstance(block, TextContentBlock):
                if block.text:
                    parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageContentBlock):
                url = RequestMapper.map_image_source(block.source)
                if url:
                    parts.append({"type": "image_url", "image_url": {"url": url}})
            else:
                logger.debug(f"Dropping {block.type} block from user message")

        if len(parts) == 1 and parts[0]["type"] == "text":
            return {"role": "user", "content": parts[0]["text"]}
        return {"role": "user", "content": parts}

    @staticmethod
    def map_image_source(source: Any) -> Optional[str]:
        """Build a data: URL from a base64 image source, None if malformed."""
        if not isinstance(source, dict):
            return None
        if source.get("type") != "base64":
            return None
        if "media_type" not in source or "data" not in source:
            return None
        return f"data:{source['media_type']};base64,{source['data']}"

    @staticmethod
    def map_assistant_message(msg: AnthropicMessage) -> dict:
        """
        Convert an assistant message.

        Text blocks are concatenated into content, tool_use blocks become
        OpenAI tool_calls with JSON-encoded arguments.
        """
        if not msg.content:
            return {"role": "assistant", "content": None}

        if isinstance(msg.content, str):
            return {"role": "assistant", "content": msg.content}

        text_parts = []
        tool_calls = []

        for block in msg.content:
            if isinstance(block, TextContentBlock):
                if block.text:
                    text_parts.append(block.text)
            elif isinstance(block, ToolUseContentBlock):
                if block.id and block.name:
                    tool_calls.append({
                        "id": block.id,
                        "type": "function",
                        "function": {
                            "name": block.name,
                            "arguments": _dumps(block.input if block.input is not None else {}),
                        },
                    })

        openai_msg = {
            "role": "assistant",
            "content": "".join(text_parts) if text_parts else None,
        }
        if tool_calls:
            openai_msg["tool_calls"] = tool_calls

        return openai_msg

    @staticmethod
    def map_tool_results(msg: AnthropicMessage) -> list[dict]:
        """Turn each tool_result block into an OpenAI "tool" message."""
        tool_messages = []

        if isinstance(msg.content, list):
            for block in msg.content:
                if isinstance(block, ToolResultContentBlock):
                    tool_messages.append({
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": RequestMapper.normalize_tool_result_content(block.content),
                    })

        return tool_messages

    @staticmethod
    def normalize_tool_result_content(content: Any) -> str:
        """Flatten tool_result content (string, block list or object) to a string."""
        if content is None:
            return NO_CONTENT_PLACEHOLDER

        if isinstance(content, str):
            return content

        if isinstance(content, list):
            parts = []
            for item in content:
                if isinstance(item, dict):
                    if item.get("type") == "text" or "text" in item:
                        parts.append(_text_of(item))
                    else:
                        try:
                            parts.append(_dumps(item))
                        except (TypeError, ValueError):
                            parts.append(str(item))
                elif isinstance(item, str):
                    parts.append(item)
            return "\n".join(parts).strip()

        if isinstance(content, dict):
            if content.get("type") == "text":
                return _text_of(content)
            try:
                return _dumps(content)
            except (TypeError, ValueError):
                return str(content)

        try:
            return str(content)
        except Exception:
            return UNPARSEABLE_PLACEHOLDER

    @staticmethod
    def map_tools(tools: list[ToolDefinition]) -> list[dict]:
        """
        Convert Anthropic tools to OpenAI function tools.

        Anthropic: [{"name": "...", "description": "...", "input_schema": {...}}]
        OpenAI: [{"type": "function", "function": {"name": ..., "parameters": ...}}]
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description or "",
                    "parameters": tool.input_schema,
                },
            }
            for tool in tools
            if tool.name and tool.name.strip()
        ]

    @staticmethod
    def map_tool_choice(tool_choice: Any) -> Union[str, dict]:
        # OpenAI has no "any"; "auto" is the closest equivalent
        if not isinstance(tool_choice, ToolChoice):
            return "auto"
        if tool_choice.type == "tool" and tool_choice.name:
            return {"type": "function", "function": {"name": tool_choice.name}}
        return "auto"


class ResponseMapper:
    """Mapper for OpenAI chat completion responses into Anthropic messages."""

    @staticmethod
    def map_response(openai_response: dict, original_request: MessageRequest) -> dict:
        """
        Convert a buffered OpenAI chat completion to an Anthropic message.

        Raises:
            EmptyChoicesError: If the response has no choices
        """
        choices = openai_response.get("choices")
        if not choices:
            raise EmptyChoicesError()

        choice = choices[0]
        message = choice.get("message") or {}
        content_blocks = []

        if message.get("content") is not None:
            content_blocks.append({"type": "text", "text": message["content"]})

        for tool_call in message.get("tool_calls") or []:
            if tool_call.get("type") != "function":
                continue

            function = tool_call.get("function") or {}
            arguments = function.get("arguments") or "{}"
            try:
                tool_input = strict_loads(arguments)
            except (TypeError, ValueError):
                logger.warning(f"Unparseable tool arguments for {function.get('name')}")
                tool_input = {"raw_arguments": function.get("arguments") or ""}

            content_blocks.append({
                "type": "tool_use",
                "id": tool_call.get("id") or "",
                "name": function.get("name") or "",
                "input": tool_input,
            })

        if not content_blocks:
            content_blocks.append({"type": "text", "text": ""})

        usage = openai_response.get("usage") or {}
        prompt_details = usage.get("prompt_tokens_details") or {}

        return {
            "id": openai_response.get("id") or f"msg_{uuid.uuid4().hex[:24]}",
            "type": "message",
            "role": "assistant",
            "model": original_request.model,
            "content": content_blocks,
            "stop_reason": map_finish_reason(choice.get("finish_reason")),
            "stop_sequence": None,
            "usage": {
                "input_tokens": usage.get("prompt_tokens") or 0,
                "output_tokens": usage.get("completion_tokens") or 0,
                "cache_read_input_tokens": prompt_details.get("cached_tokens") or 0,
            },
        }
