"""
File classification: authoritative MIME type and allow-list enforcement
"""
import asyncio
import logging
from numbers import Number
from typing import Iterable, Optional

import filetype
from binaryornot.helpers import is_binary_string

from .errors import DisallowedType, FileReadTimeout, InvalidFile
from .parts import RawFilePart
from .pending import ResolvedFile

logger = logging.getLogger(__name__)

TEXT_MIME_TYPE = 'text/plain'
TEXT_SNIFF_BYTES = 1024
ENCODING = 'binary'


class UploadValidator:
    """
    Validates client-declared file properties
    """

    @staticmethod
    def validate_file_properties(name, size, declared_type):
        """
        Validate the descriptive fields sent with a file part

        Args:
            name: Client file name
            size: Declared size in bytes
            declared_type: Client-declared MIME type

        Returns:
            tuple: (is_valid, error_message)
        """
        if not name:
            return False, "Invalid file properties: name is missing."

        if isinstance(size, bool) or not isinstance(size, Number) or size < 0:
            return False, "Invalid file properties: size is missing or invalid."

        if not declared_type:
            return False, "Invalid file properties: type is missing."

        return True, ""

    @staticmethod
    def validate_allowed_type(mime_type, allowed_types):
        """
        Check the resolved MIME type against the allow-list

        Returns:
            tuple: (is_valid, error_message)
        """
        allowed_types = list(allowed_types)
        if mime_type not in allowed_types:
            return False, (
                f"File type {mime_type} is not allowed. "
                f"Allowed types: {', '.join(allowed_types)}"
            )
        return True, ""


def sniff_mime_type(content: bytes, declared_type: str) -> str:
    """
    Resolve the MIME type of `content`.

    A byte-signature match wins; otherwise content that looks like text is
    `text/plain`; otherwise the declared type is kept.
    """
    kind = filetype.guess(content)
    if kind is not None:
        return kind.mime

    if not is_binary_string(content[:TEXT_SNIFF_BYTES]):
        return TEXT_MIME_TYPE

    return declared_type


async def classify(
    part: RawFilePart,
    allowed_types: Iterable[str],
    read_timeout: Optional[float] = None,
) -> ResolvedFile:
    """
    Validate one file part and buffer its content

    Raises:
        InvalidFile: name, size or declared type missing
        FileReadTimeout: bytes not received within `read_timeout` seconds
        DisallowedType: resolved type not in `allowed_types`
    """
    is_valid, error_message = UploadValidator.validate_file_properties(
        part.name, part.size, part.declared_mime_type
    )
    if not is_valid:
        raise InvalidFile(error_message)

    try:
        content = await asyncio.wait_for(part.read(), timeout=read_timeout)
    except asyncio.TimeoutError:
        raise FileReadTimeout(f"Reading {part.name} timed out after {read_timeout}s.")

    mime_type = sniff_mime_type(content, part.declared_mime_type)
    if mime_type != part.declared_mime_type:
        logger.debug("%s declared as %s, detected %s", part.name, part.declared_mime_type, mime_type)

    is_valid, error_message = UploadValidator.validate_allowed_type(mime_type, allowed_types)
    if not is_valid:
        raise DisallowedType(error_message)

    return ResolvedFile(
        encoding=ENCODING,
        file_name=part.name,
        file_size=part.size,
        mime_type=mime_type,
        content=content,
    )
