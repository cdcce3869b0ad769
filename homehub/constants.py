"""Central constants for homehub.

Only put small, stable primitives here - avoid runtime/config dependent values.
"""

# Spotify Web API
SPOTIFY_API_BASE = "https://api.spotify.com/v1"
SPOTIFY_ACCOUNTS_BASE = "https://accounts.spotify.com"
AUTHORIZE_ENDPOINT = f"{SPOTIFY_ACCOUNTS_BASE}/authorize"
TOKEN_ENDPOINT = f"{SPOTIFY_ACCOUNTS_BASE}/api/token"
CURRENT_PLAYBACK_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player"
USER_QUEUE_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/queue"
DEVICES_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/devices"
PLAY_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/play"
PAUSE_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/pause"
VOLUME_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/volume"
SHUFFLE_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/shuffle"
REPEAT_ENDPOINT = f"{SPOTIFY_API_BASE}/me/player/repeat"

OAUTH_SCOPES = (
    "user-read-playback-state",
    "user-modify-playback-state",
    "user-read-currently-playing",
    "app-remote-control",
    "user-read-recently-played",
)

# Environment names
HOME = "home"
MAIN = "main"
ENVIRONMENT_NAMES = (HOME, MAIN)
DEFAULT_ENVIRONMENT = HOME

# Playback defaults
RELAX_PLAYLIST_URI = "spotify:playlist:0qPA1tBtiCLVHCUfREECnO"
DEFAULT_TRANSFER_VOLUME = 50
PLAYLIST_PAGE_SIZE = 100
ALBUM_PAGE_SIZE = 50
REPEAT_STATES = ("track", "context", "off")

# Tailscale
TAILSCALE_API_BASE = "https://api.tailscale.com/api/v2"
