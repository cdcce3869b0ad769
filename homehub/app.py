"""
homehub Application
Flask application factory wiring services, blueprints and error handlers.
"""

import atexit
import logging
import os
from typing import Optional

from flask import Flask, Response
from flask_compress import Compress

from .routes import health_bp, manage_bp, spotify_bp
from .routes.errors import register_error_handlers
from .services.service_manager import (ServiceManager, get_service_manager,
                                       set_service_manager)
from .utils.logger import log_shutdown, log_startup, setup_logging
from .version import get_app_info

logger = logging.getLogger("homehub")

compress = Compress()


def _configure_compression(app: Flask) -> None:
    app.config.setdefault('COMPRESS_REGISTER', True)
    app.config.setdefault('COMPRESS_ALGORITHM', os.getenv('HOMEHUB_COMPRESS_ALGO', 'gzip'))
    app.config.setdefault('COMPRESS_MIMETYPES', ('application/json',))
    try:
        app.config['COMPRESS_LEVEL'] = max(1, min(9, int(os.getenv('HOMEHUB_COMPRESS_LEVEL', '6'))))
    except ValueError:
        app.config['COMPRESS_LEVEL'] = 6
    try:
        app.config['COMPRESS_MIN_SIZE'] = max(256, int(os.getenv('HOMEHUB_COMPRESS_MIN_BYTES', '1024')))
    except ValueError:
        app.config['COMPRESS_MIN_SIZE'] = 1024
    compress.init_app(app)


def create_app(service_manager: Optional[ServiceManager] = None, *, configure_logging: bool = True) -> Flask:
    """Build the gateway application.

    Args:
        service_manager: Pre-built services (tests inject fakes); the global
            manager is created from the environment otherwise
        configure_logging: Attach the root handlers (off in tests)
    """
    if configure_logging:
        setup_logging()
        log_startup("homehub")

    if service_manager is not None:
        set_service_manager(service_manager)
    manager = get_service_manager()

    app = Flask(__name__)
    _configure_compression(app)

    app.register_blueprint(spotify_bp)
    app.register_blueprint(manage_bp)
    app.register_blueprint(health_bp)
    register_error_handlers(app)

    @app.after_request
    def _no_store(response: Response) -> Response:
        response.headers.setdefault('Cache-Control', 'no-store')
        return response

    def _shutdown() -> None:
        manager.shutdown()
        log_shutdown(logger, "background tasks")

    atexit.register(_shutdown)
    logger.info(f"✅ {get_app_info()} ready", extra={"services": sorted(manager.services)})
    return app


__all__ = ["create_app"]
