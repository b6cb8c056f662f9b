"""
Pending upload placeholder

A PendingUpload is placed into the GraphQL variables before its file has been
validated. Resolvers await it to get the ResolvedFile, or the error the file
was rejected with.
"""
import asyncio
import enum
import io
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Generator, Optional


class UploadState(enum.Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ResolvedFile:
    """Metadata and buffered content of a validated upload"""
    encoding: str
    file_name: str
    file_size: int
    mime_type: str
    content: bytes = field(repr=False)

    def open(self) -> BinaryIO:
        """Return a fresh readable stream over the buffered bytes; callable any number of times"""
        return io.BytesIO(self.content)


class PendingUpload:
    """
    Single-resolution cell for a file that will become available or fail.

    Exactly one of resolve() / reject() takes effect. Later calls return False
    and leave the cell untouched.

    Usage:
        upload = PendingUpload()
        upload.resolve(resolved_file)
        file = await upload
    """

    def __init__(self):
        self.state = UploadState.PENDING
        self._value: Optional[ResolvedFile] = None
        self._error: Optional[BaseException] = None
        self._settled = asyncio.Event()

    def __repr__(self) -> str:
        return f"<PendingUpload {self.state.value}>"

    @property
    def is_settled(self) -> bool:
        return self.state is not UploadState.PENDING

    @property
    def file(self) -> Optional[ResolvedFile]:
        return self._value

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def resolve(self, value: ResolvedFile) -> bool:
        if not self._transition(UploadState.RESOLVED):
            return False
        self._value = value
        self._settled.set()
        return True

    def reject(self, error: BaseException) -> bool:
        if not self._transition(UploadState.REJECTED):
            return False
        self._error = error
        self._settled.set()
        return True

    def _transition(self, target: UploadState) -> bool:
        if self.state is not UploadState.PENDING:
            return False
        self.state = target
        return True

    async def wait(self) -> ResolvedFile:
        await self._settled.wait()
        if self.state is UploadState.REJECTED:
            raise self._error
        return self._value

    def __await__(self) -> Generator[Any, None, ResolvedFile]:
        return self.wait().__await__()
