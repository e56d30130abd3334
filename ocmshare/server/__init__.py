"""
ocmshare server - Open Cloud Mesh share exchange endpoints.

Run with:
    ocmshare-server          # CLI entry point
    python -m ocmshare.server  # Module entry point

Or programmatically:
    from ocmshare.server import OCMShareServer
    server = OCMShareServer(port=8000, registry=registry)
    server.run()
"""

from .app import OCMShareServer, create_app
from .config import ServerConfig

__all__ = [
    "create_app",
    "OCMShareServer",
    "ServerConfig",
]
