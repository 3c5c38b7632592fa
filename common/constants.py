"""Project-wide constants (chunk size, bucket layout, upload limits, MIME types)."""

DEFAULT_CHUNK_SIZE_BYTES: int = 255 * 1024  # 255 KiB, the usual chunked-store default

DEFAULT_BUCKET_NAME: str = "uploads"

DEFAULT_CACHE_MAX_AGE_SECONDS: int = 31536000  # one year

DEFAULT_MAX_PHOTOS: int = 10

DEFAULT_MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024

DEFAULT_AUDIT_INTERVAL_SECONDS: int = 6 * 3600

CAREER_GUIDANCE_WEEK: int = 0

FILE_TYPE_PHOTO = "photo"
FILE_TYPE_REPORT = "report"
FILE_TYPE_CAREER_GUIDANCE = "career-guidance"

REPORT_CONTENT_TYPES = (
    "application/pdf",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
