"""Dependencies shared by the API routes."""

from fastapi import Request

from chatbridge.config import Settings
from chatbridge.core.upstream import UpstreamClient


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_upstream(request: Request) -> UpstreamClient:
    """Upstream client opened by the application lifespan."""
    return request.app.state.upstream
