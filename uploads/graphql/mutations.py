"""GraphQL mutations for uploads"""
import asyncio
from typing import List, Optional

import strawberry
from strawberry.types import Info

from uploads.storage import store_upload
from .scalars import Upload
from .types import UploadedFileType


def get_request(info: Info):
    return getattr(info.context, 'request', None)


@strawberry.type
class UploadMutation:

    @strawberry.mutation
    async def upload_file(self, info: Info, file: Upload) -> Optional[UploadedFileType]:
        """Store a single upload. Resolves to null with an error if the file was rejected"""
        resolved = await file
        stored = await store_upload(resolved, request=get_request(info))
        return UploadedFileType.from_stored(stored)

    @strawberry.mutation
    async def upload_files(self, info: Info, files: List[Upload]) -> List[UploadedFileType]:
        """Store several uploads; fails as a whole if any of them was rejected"""
        resolved_files = await asyncio.gather(*files)
        request = get_request(info)

        stored_files = []
        for resolved in resolved_files:
            stored = await store_upload(resolved, request=request)
            stored_files.append(UploadedFileType.from_stored(stored))
        return stored_files
