"""
API package - FastAPI routes and schemas.
"""

from nodeflow.api.routes import flows, node_types, runs, websocket

__all__ = ["flows", "node_types", "runs", "websocket"]
