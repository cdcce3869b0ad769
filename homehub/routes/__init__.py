"""
homehub Route Blueprints
Spotify control, machine management and health endpoints.
"""

from .health import health_bp
from .manage import manage_bp
from .spotify import spotify_bp

__all__ = [
    "health_bp",
    "manage_bp",
    "spotify_bp",
]
