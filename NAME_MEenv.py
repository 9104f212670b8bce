# Required settings
CHANNELS = [
    "https://www.youtube.com/@ChannelName",
]  # Channel URLs to watch, one loop per entry
OUTPUT_ROOT = "/path/to/stream/storage"  # Each channel records into OUTPUT_ROOT/<name>
CHECK_INTERVAL = 60  # seconds with minimum of 30
MIN_FREE_DISK_GB = 10  # Skip a recording while less than this is free

# Optional settings
SAVE_METADATA = True  # Also write thumbnail, description and info.json sidecars
AUTO_UPDATE = True  # Run "yt-dlp -U" once when the watcher starts
PROBE_TIMEOUT = 20  # seconds before a live check is abandoned, the next poll retries
COOKIES_FILE = ""  # Netscape cookies file passed to yt-dlp (optional)

# Leave empty to look the tools up on PATH
YTDLP_PATH = ""
FFMPEG_PATH = ""

# Notifications are sent to a Discord webhook
NOTIFICATIONS_ENABLED = True
DISCORD_WEBHOOK_URL = ""  # Discord webhook URL for notifications (optional)

# Watchdog settings
WATCHDOG_LOG = "/path/to/log/storage/watchdog.log"
RESTART_DELAY = 10  # seconds between a watcher exit and its relaunch
WATCHER_COMMAND = []  # Defaults to running the watcher with the current interpreter
