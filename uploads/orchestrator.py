"""
Upload orchestration: map-driven placement of pending uploads, concurrent
classification, and engine execution once every file has settled
"""
import asyncio
import logging
from numbers import Number
from typing import Any, Dict, Iterable, List, Optional

from .classifier import classify
from .engine import OperationRequest
from .errors import EngineExecutionFailure, FileRejected, OversizedFile, UploadError
from .parts import MultipartParts, RawFilePart
from .paths import graft
from .pending import PendingUpload
from .responses import WireResponse, adapt_engine_response

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Drives one multipart request from parsed parts to a wire response

    Usage:
        orchestrator = UploadOrchestrator(
            engine,
            allowed_types=['image/png', 'text/plain'],
            max_file_size=10 * 1024 * 1024,
        )
        response = await orchestrator.process(parts, context_value)
    """

    def __init__(
        self,
        engine,
        allowed_types: Iterable[str],
        max_file_size: int,
        read_timeout: Optional[float] = None,
        strict_paths: bool = False,
    ):
        self.engine = engine
        self.allowed_types = tuple(allowed_types)
        self.max_file_size = max_file_size
        self.read_timeout = read_timeout
        self.strict_paths = strict_paths

    async def process(self, parts: MultipartParts, context_value: Any = None) -> WireResponse:
        operations = parts.operations
        if operations.get('variables') is None:
            operations['variables'] = {}

        try:
            uploads = await self.place_uploads(parts.files, parts.files_map, operations)
        except OversizedFile as error:
            logger.warning("Upload request rejected: %s", error.message)
            return WireResponse.from_error(error)

        unsettled = [upload for upload in uploads if not upload.is_settled]
        if unsettled:
            raise RuntimeError(f"{len(unsettled)} uploads left pending after processing")

        request = OperationRequest(
            query=operations.get('query'),
            variables=operations['variables'],
            operation_name=operations.get('operationName'),
        )
        try:
            response = await self.engine.execute_operation(request, context_value)
        except UploadError:
            raise
        except Exception as error:
            raise EngineExecutionFailure(f"GraphQL execution failed: {error}") from error

        return await adapt_engine_response(response)

    async def place_uploads(
        self,
        files: Dict[str, RawFilePart],
        files_map: Dict[str, List[str]],
        operations: Dict[str, Any],
    ) -> List[PendingUpload]:
        """
        Graft a placeholder for every map entry and wait for all of them to settle

        Returns the placed PendingUploads, all terminal.

        Raises:
            OversizedFile: a file exceeds max_file_size; nothing is awaited
            PathConflict: strict_paths is set and a path crosses a value of the wrong kind
        """
        uploads: List[PendingUpload] = []
        tasks: List[asyncio.Task] = []

        try:
            for file_key, paths in files_map.items():
                part = files.get(file_key)

                if part is None:
                    logger.info("No file part for map key %r, setting %d path(s) to null", file_key, len(paths))
                    for path in paths:
                        graft(operations, path, None, strict=self.strict_paths)
                    continue

                if isinstance(part.size, Number) and part.size > self.max_file_size:
                    raise OversizedFile(
                        f"File {part.name} size is too large. Maximum allowed size is "
                        f"{self.max_file_size / (1024 * 1024):g}MB."
                    )

                upload = PendingUpload()
                for path in paths:
                    graft(operations, path, upload, strict=self.strict_paths)
                uploads.append(upload)
                tasks.append(asyncio.ensure_future(self.settle(part, upload)))
        except UploadError:
            # Abandon classification already started for earlier keys
            for task in tasks:
                task.cancel()
            raise

        if tasks:
            await asyncio.gather(*tasks)
        return uploads

    async def settle(self, part: RawFilePart, upload: PendingUpload) -> None:
        """Classify one part and settle its placeholder; never raises"""
        try:
            resolved = await classify(part, self.allowed_types, read_timeout=self.read_timeout)
        except UploadError as error:
            logger.warning("Rejected upload %s: %s", part.name, error.message)
            upload.reject(FileRejected(f"Failed to process file {part.name}: {error.message}"))
        except Exception as error:
            logger.exception("Unexpected failure while processing upload %s", part.name)
            upload.reject(FileRejected(f"Failed to process file {part.name}: {error}"))
        else:
            upload.resolve(resolved)


async def process_upload_request(
    parts: MultipartParts,
    *,
    engine,
    context_value: Any = None,
    allowed_types: Iterable[str],
    max_file_size: int,
    read_timeout: Optional[float] = None,
    strict_paths: bool = False,
) -> WireResponse:
    orchestrator = UploadOrchestrator(
        engine,
        allowed_types=allowed_types,
        max_file_size=max_file_size,
        read_timeout=read_timeout,
        strict_paths=strict_paths,
    )
    return await orchestrator.process(parts, context_value)
