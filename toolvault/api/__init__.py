"""FastAPI integration for ToolVault."""

from toolvault.api.routes import create_router

__all__ = ["create_router"]
