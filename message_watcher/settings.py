"""Configuration for Message Watcher."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = Path(os.getenv("LOGS_DIR", str(BASE_DIR / "logs")))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# Watched root; Errors/ and Archive/ live underneath it
MESSAGE_DIR = os.getenv("MESSAGE_DIR")

# Watcher timing (seconds)
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "2"))
RESCAN_INTERVAL = float(os.getenv("RESCAN_INTERVAL", "10"))
BURST_SECONDS = float(os.getenv("BURST_SECONDS", "10"))
MOVE_RETRY_DELAY = float(os.getenv("MOVE_RETRY_DELAY", "1"))

# Shutdown escalation (seconds)
STOP_JOIN_TIMEOUT = float(os.getenv("STOP_JOIN_TIMEOUT", "10"))
STOP_GRACE_SECONDS = float(os.getenv("STOP_GRACE_SECONDS", "20"))
STOP_POLL_INCREMENT = float(os.getenv("STOP_POLL_INCREMENT", "2"))

# Chat notifications
CHAT_WEBHOOK_URL = os.getenv("CHAT_WEBHOOK_URL")
CHAT_MESSAGE_TYPE = os.getenv("CHAT_MESSAGE_TYPE", "ChatNotification")
CHAT_TIMEOUT = int(os.getenv("CHAT_TIMEOUT", "30"))


def validate_config():
    """Validate required configuration."""
    errors = []

    if not MESSAGE_DIR:
        errors.append("MESSAGE_DIR is required")
    else:
        message_dir = Path(MESSAGE_DIR)
        if not message_dir.is_absolute():
            errors.append(f"MESSAGE_DIR must be absolute: {MESSAGE_DIR}")
        elif not message_dir.is_dir():
            errors.append(f"MESSAGE_DIR does not exist: {MESSAGE_DIR}")

    for name in ("POLL_INTERVAL", "RESCAN_INTERVAL", "BURST_SECONDS", "STOP_POLL_INCREMENT"):
        if globals()[name] <= 0:
            errors.append(f"{name} must be positive")

    if CHAT_WEBHOOK_URL and not CHAT_WEBHOOK_URL.startswith(("http://", "https://")):
        errors.append(f"CHAT_WEBHOOK_URL must be an http(s) URL: {CHAT_WEBHOOK_URL}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
