"""Configuration settings for the weekvault API server."""

import os

from common.constants import (
    DEFAULT_AUDIT_INTERVAL_SECONDS,
    DEFAULT_BUCKET_NAME,
    DEFAULT_CACHE_MAX_AGE_SECONDS,
    DEFAULT_CHUNK_SIZE_BYTES,
    DEFAULT_MAX_PHOTOS,
    DEFAULT_MAX_UPLOAD_BYTES,
)


DATABASE_PATH = os.environ.get("WEEKVAULT_DATABASE_PATH", "/app/data/weekvault.db")

CONTROLLER_HOST = os.environ.get("WEEKVAULT_HOST", "0.0.0.0")

CONTROLLER_PORT = int(os.environ.get("WEEKVAULT_PORT", "8000"))

BUCKET_NAME = os.environ.get("WEEKVAULT_BUCKET_NAME", DEFAULT_BUCKET_NAME)

CHUNK_SIZE_BYTES = int(os.environ.get("WEEKVAULT_CHUNK_SIZE_BYTES", str(DEFAULT_CHUNK_SIZE_BYTES)))

MAX_PHOTOS = int(os.environ.get("WEEKVAULT_MAX_PHOTOS", str(DEFAULT_MAX_PHOTOS)))

MAX_UPLOAD_BYTES = int(os.environ.get("WEEKVAULT_MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))

CACHE_MAX_AGE_SECONDS = int(os.environ.get("WEEKVAULT_CACHE_MAX_AGE", str(DEFAULT_CACHE_MAX_AGE_SECONDS)))

# 0 disables the background integrity sweep
AUDIT_INTERVAL_SECONDS = int(
    os.environ.get("WEEKVAULT_AUDIT_INTERVAL_SECONDS", str(DEFAULT_AUDIT_INTERVAL_SECONDS))
)

DB_TIMEOUT_SECONDS = float(os.environ.get("WEEKVAULT_DB_TIMEOUT_SECONDS", "30"))

CALLER_HEADER = "X-Caller-Id"
