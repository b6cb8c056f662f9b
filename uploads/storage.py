"""
Storage sink for resolved uploads, backed by Django's default storage
"""
import logging
from dataclasses import dataclass
from typing import Optional

from asgiref.sync import sync_to_async
from django.core.files import File
from django.core.files.storage import default_storage
from django.utils.text import get_valid_filename

from .pending import ResolvedFile

logger = logging.getLogger(__name__)


@dataclass
class StoredUpload:
    encoding: str
    file_name: str
    file_size: int
    mime_type: str
    uri: str


def save_upload(resolved: ResolvedFile, request=None, storage=None) -> StoredUpload:
    """
    Write the upload's bytes to storage and describe where it landed

    Args:
        resolved: ResolvedFile from a settled PendingUpload
        request: Optional HttpRequest, used to build an absolute URI
        storage: Storage backend (defaults to default_storage)
    """
    storage = storage or default_storage
    stored_name = storage.save(
        get_valid_filename(resolved.file_name),
        File(resolved.open(), name=resolved.file_name),
    )
    uri = storage.url(stored_name)
    if request is not None:
        uri = request.build_absolute_uri(uri)

    logger.info("Stored upload %s (%s, %d bytes) as %s",
                resolved.file_name, resolved.mime_type, resolved.file_size, stored_name)

    return StoredUpload(
        encoding=resolved.encoding,
        file_name=resolved.file_name,
        file_size=resolved.file_size,
        mime_type=resolved.mime_type,
        uri=uri,
    )


async def store_upload(resolved: ResolvedFile, request=None, storage: Optional[object] = None) -> StoredUpload:
    return await sync_to_async(save_upload)(resolved, request=request, storage=storage)
