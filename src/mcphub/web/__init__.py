from .app import create_app
from .context import AppContext, build_context

__all__ = ["AppContext", "build_context", "create_app"]
