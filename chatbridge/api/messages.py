"""Anthropic-compatible messages endpoint backed by an OpenAI-compatible provider."""

import json
import logging
from typing import Union
from fastapi import APIRouter, Depends
from fastapi.responses import Response, StreamingResponse

from chatbridge.api.deps import get_app_settings, get_upstream
from chatbridge.config import Settings
from chatbridge.core import (
    ConversionError,
    RequestMapper,
    ResponseMapper,
    StreamTranslator,
    UpstreamClient,
    iter_lines,
)
from chatbridge.core.models import MessageRequest, MessageResponse

logger = logging.getLogger(__name__)
router = APIRouter()


async def stream_message(
    request: MessageRequest,
    openai_request: dict,
    upstream: UpstreamClient,
) -> Response:
    """Stream a completion from the provider in Anthropic SSE format."""
    response = await upstream.open_completion_stream(openai_request)

    logger.debug(f"Upstream response: {response.status_code}")

    if response.is_error:
        body = await response.aread()
        await response.aclose()
        logger.warning(f"Upstream returned {response.status_code} for streaming request")
        return Response(
            content=body,
            status_code=response.status_code,
            media_type="application/json",
        )

    translator = StreamTranslator(model=request.model)

    async def event_stream():
        try:
            async for frame in translator.translate(iter_lines(response)):
                yield frame
        finally:
            await response.aclose()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


async def create_non_streaming_message(
    request: MessageRequest,
    openai_request: dict,
    upstream: UpstreamClient,
) -> Union[Response, MessageResponse]:
    """Create a non-streaming message."""
    response = await upstream.create_completion(openai_request)

    logger.debug(f"Upstream response: {response.status_code}")

    if response.is_error:
        logger.warning(f"Upstream returned {response.status_code}")
        return Response(
            content=response.content,
            status_code=response.status_code,
            media_type="application/json",
        )

    try:
        openai_response = response.json()
    except ValueError:
        raise ConversionError("Upstream returned invalid JSON")

    if not isinstance(openai_response, dict):
        raise ConversionError("Upstream returned an unexpected document")

    logger.debug(f"OpenAI response: {json.dumps(openai_response)}")

    response_data = ResponseMapper.map_response(openai_response, request)

    logger.debug(f"Anthropic response: {json.dumps(response_data)}")

    return MessageResponse(**response_data)


@router.post("/v1/messages", response_model=None)
async def create_message(
    request: MessageRequest,
    settings: Settings = Depends(get_app_settings),
    upstream: UpstreamClient = Depends(get_upstream),
):
    """
    Create a message (Anthropic-compatible).

    Supports both streaming and non-streaming modes.
    """
    logger.debug(f"Anthropic request: {request.model_dump_json()}")

    openai_request = RequestMapper.map_request(
        request,
        target_model=settings.groq_model,
        default_model=settings.default_model,
    )

    logger.info(
        f"Creating message: model={openai_request['model']}, "
        f"messages={len(openai_request['messages'])}, stream={bool(request.stream)}"
    )
    logger.debug(f"OpenAI request: {json.dumps(openai_request)}")

    if request.stream:
        return await stream_message(request, openai_request, upstream)
    else:
        return await create_non_streaming_message(request, openai_request, upstream)
