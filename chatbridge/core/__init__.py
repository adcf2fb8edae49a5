"""Core translation utilities for chatbridge."""

from chatbridge.core.errors import ConversionError, EmptyChoicesError, UpstreamError, error_payload
from chatbridge.core.mapper import RequestMapper, ResponseMapper, map_finish_reason, map_model
from chatbridge.core.stream import StreamTranslator, format_sse
from chatbridge.core.upstream import UpstreamClient, iter_lines, iter_raw

__all__ = [
    "ConversionError",
    "EmptyChoicesError",
    "UpstreamError",
    "error_payload",
    "RequestMapper",
    "ResponseMapper",
    "map_finish_reason",
    "map_model",
    "StreamTranslator",
    "format_sse",
    "UpstreamClient",
    "iter_lines",
    "iter_raw",
]
