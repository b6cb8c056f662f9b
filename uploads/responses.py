"""
Translate engine results into wire responses
"""
from dataclasses import dataclass
from typing import Any, Dict

from .engine import IncrementalResponse, SingleResponse
from .errors import InternalError, UploadError


@dataclass
class WireResponse:
    payload: Dict[str, Any]
    status: int = 200

    @classmethod
    def from_error(cls, error: UploadError) -> 'WireResponse':
        return cls(payload=error.as_payload(), status=error.status_code)


async def adapt_engine_response(response: Any) -> WireResponse:
    """
    Build the wire response for an engine result

    Incremental results are drained completely and returned as one document;
    the caller never receives a chunked stream.

    Raises:
        InternalError: the result is neither single nor incremental
    """
    if isinstance(response, SingleResponse):
        return WireResponse(payload=response.single_result)

    if isinstance(response, IncrementalResponse):
        subsequent_results = [result async for result in response.subsequent_results]
        return WireResponse(payload={
            "initialResult": response.initial_result,
            "subsequentResults": subsequent_results,
        })

    raise InternalError("Unexpected server response format")
