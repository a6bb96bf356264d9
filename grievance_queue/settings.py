"""Configuration for the complaint queue and assignment worker."""
import os
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")
LOG_FILE = os.getenv("LOG_FILE", "worker.log")  # empty disables the file handler

# Queue store
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_SOCKET_TIMEOUT = float(os.getenv("REDIS_SOCKET_TIMEOUT", "5"))

# Assignment service
ASSIGNMENT_SERVICE_URL = os.getenv("ASSIGNMENT_SERVICE_URL", "http://localhost:3002")
ASSIGNMENT_TIMEOUT = float(os.getenv("ASSIGNMENT_TIMEOUT", "5"))

# Municipalities the worker may dispatch to
ALLOWED_MUNICIPALITIES = [
    m.strip()
    for m in os.getenv("ALLOWED_MUNICIPALITIES", "Ranchi,Dhanbad,Jamshedpur").split(",")
    if m.strip()
]

# Worker settings
IDLE_INTERVAL = int(os.getenv("IDLE_INTERVAL", "10"))  # seconds between polls of an empty queue
RETRY_INTERVAL = int(os.getenv("RETRY_INTERVAL", "30"))  # seconds before retrying a failed assignment
ERROR_INTERVAL = int(os.getenv("ERROR_INTERVAL", "5"))
MAX_ASSIGNMENT_ATTEMPTS = int(os.getenv("MAX_ASSIGNMENT_ATTEMPTS", "0"))  # 0 = retry forever
UNSERVED_QUEUE = os.getenv("UNSERVED_QUEUE", "")  # empty = drop out-of-scope complaints


def validate_config():
    """Validate required configuration."""
    errors = []

    if urlparse(REDIS_URL).scheme not in ("redis", "rediss", "unix"):
        errors.append(f"REDIS_URL must be a redis://, rediss:// or unix:// URL: {REDIS_URL}")

    if urlparse(ASSIGNMENT_SERVICE_URL).scheme not in ("http", "https"):
        errors.append(f"ASSIGNMENT_SERVICE_URL must be an http(s) URL: {ASSIGNMENT_SERVICE_URL}")

    if not ALLOWED_MUNICIPALITIES:
        errors.append("ALLOWED_MUNICIPALITIES must name at least one municipality")

    for name, value in (
        ("IDLE_INTERVAL", IDLE_INTERVAL),
        ("RETRY_INTERVAL", RETRY_INTERVAL),
        ("ERROR_INTERVAL", ERROR_INTERVAL),
        ("ASSIGNMENT_TIMEOUT", ASSIGNMENT_TIMEOUT),
    ):
        if value <= 0:
            errors.append(f"{name} must be positive, got {value}")

    if MAX_ASSIGNMENT_ATTEMPTS < 0:
        errors.append(f"MAX_ASSIGNMENT_ATTEMPTS must be >= 0, got {MAX_ASSIGNMENT_ATTEMPTS}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
