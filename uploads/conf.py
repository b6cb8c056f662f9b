"""
Upload settings, read from the GRAPHQL_UPLOAD dict in Django settings
"""
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings

DEFAULT_ALLOWED_TYPES = ("image/jpeg", "image/png", "text/plain")
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_READ_TIMEOUT = 30.0


@dataclass(frozen=True)
class UploadSettings:
    allowed_types: Tuple[str, ...] = DEFAULT_ALLOWED_TYPES
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    read_timeout: Optional[float] = DEFAULT_READ_TIMEOUT
    strict_paths: bool = False


def get_upload_settings() -> UploadSettings:
    """
    Build UploadSettings from settings.GRAPHQL_UPLOAD, filling in defaults

    Recognised keys: ALLOWED_TYPES, MAX_FILE_SIZE, READ_TIMEOUT, STRICT_PATHS
    """
    options = getattr(settings, 'GRAPHQL_UPLOAD', None) or {}
    read_timeout = options.get('READ_TIMEOUT', DEFAULT_READ_TIMEOUT)

    return UploadSettings(
        allowed_types=tuple(options.get('ALLOWED_TYPES', DEFAULT_ALLOWED_TYPES)),
        max_file_size=int(options.get('MAX_FILE_SIZE', DEFAULT_MAX_FILE_SIZE)),
        read_timeout=float(read_timeout) if read_timeout is not None else None,
        strict_paths=bool(options.get('STRICT_PATHS', False)),
    )
