#!/usr/bin/env python3
"""
homehub Runner - Starts the gateway (waitress in production, Flask in debug)
"""

import os

from waitress import serve

from homehub.app import create_app
from homehub.config import load_config
from homehub.utils.logger import setup_logger
from homehub.utils.wsgi_logging import TidyRequestHandler

if __name__ == "__main__":
    logger = setup_logger("runner")
    config = load_config()

    app = create_app()
    host = config.host
    port = config.port

    logger.info(f"🚀 Starting homehub on {host}:{port}")
    logger.info(f"🔧 Debug mode: {config.debug}")

    if config.debug:
        app.run(
            host=host,
            port=port,
            debug=True,
            use_reloader=False,
            request_handler=TidyRequestHandler,
        )
    else:
        threads = int(os.environ.get("HOMEHUB_WAITRESS_THREADS", "4"))
        backlog = int(os.environ.get("HOMEHUB_WAITRESS_BACKLOG", "128"))
        logger.info(f"🍽️ Using Waitress WSGI server (threads={threads}, backlog={backlog})")
        serve(
            app,
            host=host,
            port=port,
            threads=threads,
            backlog=backlog
        )
