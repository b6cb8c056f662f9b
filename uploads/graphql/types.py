"""GraphQL types for uploads"""
import strawberry

from uploads.storage import StoredUpload


@strawberry.type(name="File")
class UploadedFileType:
    """A stored upload"""
    encoding: str
    file_name: str
    file_size: int
    mime_type: str
    uri: str

    @classmethod
    def from_stored(cls, stored: StoredUpload) -> 'UploadedFileType':
        return cls(
            encoding=stored.encoding,
            file_name=stored.file_name,
            file_size=stored.file_size,
            mime_type=stored.mime_type,
            uri=stored.uri,
        )
