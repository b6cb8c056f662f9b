"""
Request-scoped records produced by the multipart handler
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List

from asgiref.sync import sync_to_async
from django.core.files.uploadedfile import UploadedFile


@dataclass
class RawFilePart:
    """A file part as declared by the client; bytes are read on demand"""
    name: str
    size: Any
    declared_mime_type: str
    reader: Callable[[], Awaitable[bytes]]

    async def read(self) -> bytes:
        return await self.reader()

    @classmethod
    def from_uploaded_file(cls, uploaded_file: UploadedFile) -> 'RawFilePart':
        def read_all() -> bytes:
            uploaded_file.seek(0)
            return b''.join(uploaded_file.chunks())

        return cls(
            name=uploaded_file.name or '',
            size=uploaded_file.size,
            declared_mime_type=uploaded_file.content_type or '',
            reader=sync_to_async(read_all),
        )

    @classmethod
    def from_bytes(cls, name: str, content: bytes, declared_mime_type: str) -> 'RawFilePart':
        async def read_all() -> bytes:
            return content

        return cls(
            name=name,
            size=len(content),
            declared_mime_type=declared_mime_type,
            reader=read_all,
        )


@dataclass
class MultipartParts:
    files: Dict[str, RawFilePart]
    files_map: Dict[str, List[str]]
    operations: Dict[str, Any]
