"""
Error taxonomy for GraphQL multipart uploads
"""
from typing import Any, Dict


class UploadError(Exception):
    """Base class for every failure raised while processing an upload request"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_payload(self) -> Dict[str, Any]:
        """GraphQL-shaped error list for the wire response"""
        return {"errors": [{"message": self.message}]}


# ==================================================
# REQUEST-LEVEL ERRORS (abort the whole request)
# ==================================================

class MalformedRequest(UploadError):
    """Missing or unparsable `map` / `operations`, or an unusable variable path"""
    status_code = 400


class PathConflict(MalformedRequest):
    """A map path crosses an existing value of the wrong container kind"""


class OversizedFile(UploadError):
    status_code = 413


class EngineExecutionFailure(UploadError):
    """The GraphQL engine raised instead of returning a result"""
    status_code = 500


class InternalError(UploadError):
    status_code = 500


# ==================================================
# PER-FILE ERRORS (contained to one map key)
# ==================================================

class FileRejected(UploadError):
    """A single file failed processing; only its placeholders are rejected"""
    status_code = 400


class InvalidFile(FileRejected):
    """File is missing its name, size or declared type"""


class DisallowedType(FileRejected):
    """Resolved MIME type is not in the allow-list"""


class FileReadTimeout(FileRejected):
    """Reading the file's bytes took longer than the configured deadline"""
