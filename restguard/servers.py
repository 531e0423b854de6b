"""
HTTP server driver for restguard applications.
"""

import logging
from typing import Optional

from .application import RestGuardApp

logger = logging.getLogger(__name__)


class UvicornDriver:
    """
    Runs a restguard application under Uvicorn.

    Uvicorn is installed with the ``server`` extra: ``pip install 'restguard[server]'``.
    """

    def __init__(self, app: RestGuardApp, host: Optional[str] = None, port: Optional[int] = None):
        """
        Args:
            app: The application to serve
            host: Host to bind to (defaults to ``app.settings.host``)
            port: Port to bind to (defaults to ``app.settings.port``)
        """
        self.app = app
        self.host = host or app.settings.host
        self.port = port or app.settings.port
        self.asgi_app = app.asgi()

    def run(self,
            log_level: Optional[str] = None,
            ssl_keyfile: Optional[str] = None,
            ssl_certfile: Optional[str] = None,
            **kwargs):
        """
        Run the Uvicorn server (blocking).

        Args:
            log_level: Logging level (defaults to ``app.settings.log_level``)
            ssl_keyfile: SSL key file for HTTPS
            ssl_certfile: SSL certificate file for HTTPS
            **kwargs: Additional Uvicorn configuration options
        """
        import uvicorn

        config_kwargs = {
            "host": self.host,
            "port": self.port,
            "log_level": (log_level or self.app.settings.log_level).lower(),
            "lifespan": "on",
            **kwargs
        }
        if ssl_keyfile and ssl_certfile:
            config_kwargs.update({
                "ssl_keyfile": ssl_keyfile,
                "ssl_certfile": ssl_certfile,
            })

        logger.info(f"Starting Uvicorn server on {self.host}:{self.port}")
        uvicorn.run(self.asgi_app, **config_kwargs)


def serve(app: RestGuardApp, host: Optional[str] = None, port: Optional[int] = None, **kwargs) -> None:
    """
    Serve a restguard application with Uvicorn.

    Args:
        app: The application to serve
        host: Host to bind to
        port: Port to bind to
        **kwargs: Additional server configuration options
    """
    UvicornDriver(app, host, port).run(**kwargs)
