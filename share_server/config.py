"""Configuration settings for the share/upload file server."""
import os

# Served tree. May contain {host} placeholders, expanded per request.
ROOT_DIR = os.getenv("UPSHARE_ROOT", os.path.abspath("./www"))

# Directory holding one symlink per active share
SHARE_DIR = os.getenv("UPSHARE_SHARE_DIR", "./shares")

# Route prefixes
SHARE_PREFIX = os.getenv("UPSHARE_SHARE_PREFIX", "/share")
UPLOAD_PREFIX = os.getenv("UPSHARE_UPLOAD_PREFIX", "/upload")

# Share allocation
SHARE_RETRY_INTERVAL = float(os.getenv("UPSHARE_RETRY_INTERVAL", "1.0"))  # seconds
SHARE_ALLOCATION_TIMEOUT = float(os.getenv("UPSHARE_ALLOCATION_TIMEOUT", "30"))  # 0 disables
DISCONNECT_POLL_INTERVAL = 0.25

# Streaming
CHUNK_SIZE = 8192  # 8KB

# Failure alerting
FAILURE_THRESHOLD = int(os.getenv("UPSHARE_FAILURE_THRESHOLD", "5"))
FAILURE_WINDOW_SECONDS = int(os.getenv("UPSHARE_FAILURE_WINDOW", "60"))

# Logging
LOG_DIR = os.getenv("UPSHARE_LOG_DIR", "logs")

# Server
HOST = os.getenv("UPSHARE_HOST", "0.0.0.0")
PORT = int(os.getenv("UPSHARE_PORT", "8000"))
