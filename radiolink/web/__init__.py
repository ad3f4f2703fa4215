"""
RadioLink Web Layer.

This package provides the HTTP/REST API a UI uses to drive the
application in either mode.

Components:
- WebServer: FastAPI application with all routes
"""

from radiolink.web.server import WebServer

__all__ = [
    "WebServer",
]
