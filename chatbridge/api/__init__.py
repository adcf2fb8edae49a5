"""API routes."""

from chatbridge.api import messages, passthrough

messages_router = messages.router
passthrough_router = passthrough.router

__all__ = ["messages_router", "passthrough_router"]
