"""
homehub Version Information
Single source of the gateway version reported by /healthz and the HTTP User-Agent.
"""

VERSION = "0.4.0"
APP_NAME = "homehub"


def get_version() -> str:
    return VERSION


def get_app_info() -> str:
    """Application name and version, e.g. ``homehub v0.4.0``."""
    return f"{APP_NAME} v{get_version()}"
