"""Anthropic Messages API models (the dialect clients speak to us)."""

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag
from typing import Annotated, Any, List, Literal, Optional, Union


class TextContentBlock(BaseModel):
    """Text content block."""
    type: Literal["text"] = "text"
    text: Optional[str] = ""


class ImageContentBlock(BaseModel):
    """Image content block.

    The source is kept opaque; only base64 sources are translated.
    """
    type: Literal["image"] = "image"
    source: Any = None


class ToolUseContentBlock(BaseModel):
    """Tool use content block."""
    type: Literal["tool_use"] = "tool_use"
    id: str = ""
    name: str = ""
    input: Any = None


class ToolResultContentBlock(BaseModel):
    """Tool result content block."""
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str = ""
    content: Any = None
    is_error: bool = False


class UnknownContentBlock(BaseModel):
    """Any block type we do not translate (documents, thinking, ...)."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None


KNOWN_BLOCK_TYPES = ("text", "image", "tool_use", "tool_result")


def _block_tag(value: Any) -> str:
    if isinstance(value, dict):
        block_type = value.get("type")
    else:
        block_type = getattr(value, "type", None)
    return block_type if block_type in KNOWN_BLOCK_TYPES else "unknown"


ContentBlock = Annotated[
    Union[
        Annotated[TextContentBlock, Tag("text")],
        Annotated[ImageContentBlock, Tag("image")],
        Annotated[ToolUseContentBlock, Tag("tool_use")],
        Annotated[ToolResultContentBlock, Tag("tool_result")],
        Annotated[UnknownContentBlock, Tag("unknown")],
    ],
    Discriminator(_block_tag),
]


class SystemTextBlock(BaseModel):
    """One segment of a structured system prompt."""
    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: str = ""


class AnthropicMessage(BaseModel):
    """Message in the conversation."""
    role: Literal["user", "assistant"]
    content: Optional[Union[str, List[ContentBlock]]] = None


class ToolDefinition(BaseModel):
    """Tool definition."""
    name: str = ""
    description: Optional[str] = None
    input_schema: Any = None


class ToolChoice(BaseModel):
    """Tool choice (auto, any or a named tool)."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    name: Optional[str] = None


class MessageRequest(BaseModel):
    """Message creation request."""
    model: str
    max_tokens: int
    messages: List[AnthropicMessage]
    system: Optional[Union[str, List[SystemTextBlock]]] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    stream: Optional[bool] = None
    tools: Optional[List[ToolDefinition]] = None
    # Malformed choices are kept as-is and translated to "auto"
    tool_choice: Annotated[
        Union[ToolChoice, Any], Field(union_mode="left_to_right")
    ] = None


class UsageInfo(BaseModel):
    """Token usage information."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0


class ResponseTextBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ResponseToolUseBlock(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Any


class MessageResponse(BaseModel):
    """Message response."""
    id: str
    type: Literal["message"] = "message"
    role: Literal["assistant"] = "assistant"
    content: List[Annotated[Union[ResponseTextBlock, ResponseToolUseBlock], Discriminator("type")]]
    model: str
    stop_reason: Literal["end_turn", "max_tokens", "tool_use", "stop_sequence"]
    stop_sequence: Optional[str] = None
    usage: UsageInfo
