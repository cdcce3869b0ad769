"""
homehub - personal home-automation gateway
Spotify multi-account control, machine wake/sleep and small home hooks
"""

from .version import VERSION, get_app_info, get_version

__version__ = VERSION
__all__ = ['VERSION', 'get_version', 'get_app_info']
