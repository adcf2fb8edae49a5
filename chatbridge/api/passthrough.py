"""Pass-through forwarding to an Anthropic-compatible provider."""

import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, StreamingResponse

from chatbridge.api.deps import get_app_settings, get_upstream
from chatbridge.config import Settings
from chatbridge.core import UpstreamClient, iter_raw
from chatbridge.core.upstream import filter_headers

logger = logging.getLogger(__name__)
router = APIRouter()

FORWARDED_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.api_route("/{path:path}", methods=FORWARDED_METHODS)
async def forward_request(
    path: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    upstream: UpstreamClient = Depends(get_upstream),
):
    """Relay any request untouched when the provider speaks Anthropic natively."""
    if settings.provider != "moonshot":
        return PlainTextResponse("Not Found", status_code=404)

    body = await request.body()
    response = await upstream.forward(
        request.method,
        request.url.path,
        request.url.query,
        list(request.headers.items()),
        body,
    )

    logger.debug(f"Response: {response.status_code} {response.reason_phrase}")

    relay = StreamingResponse(iter_raw(response), status_code=response.status_code)
    # Repeated headers such as set-cookie must stay separate
    for name, value in filter_headers(response.headers.multi_items()):
        relay.headers.append(name, value)
    return relay
