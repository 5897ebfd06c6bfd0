"""HTTP API for dbchat."""
from .routes import router

__all__ = ["router"]
