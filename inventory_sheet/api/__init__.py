from .app import app, get_sheet_service, serve

__all__ = ["app", "get_sheet_service", "serve"]
