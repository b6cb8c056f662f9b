"""
GraphQL engine boundary

The orchestrator only needs `execute_operation(request, context_value)`.
StrawberryEngine adapts a Strawberry schema to that contract.
"""
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

import strawberry


@dataclass
class OperationRequest:
    query: str
    variables: Dict[str, Any] = field(default_factory=dict)
    operation_name: Optional[str] = None


@dataclass
class SingleResponse:
    single_result: Dict[str, Any]


@dataclass
class IncrementalResponse:
    initial_result: Dict[str, Any]
    subsequent_results: AsyncIterator[Dict[str, Any]]


def format_result(result: Any) -> Dict[str, Any]:
    """Turn a graphql-core / Strawberry execution result into a JSON-ready dict"""
    formatted = getattr(result, 'formatted', None)
    if isinstance(formatted, dict):
        return formatted

    payload: Dict[str, Any] = {"data": result.data}
    if result.errors:
        payload["errors"] = [error.formatted for error in result.errors]
    if getattr(result, 'extensions', None):
        payload["extensions"] = result.extensions
    return payload


async def _format_stream(results: AsyncIterator[Any]) -> AsyncIterator[Dict[str, Any]]:
    async for result in results:
        yield format_result(result)


class StrawberryEngine:
    """Runs operations against a Strawberry schema"""

    def __init__(self, schema: strawberry.Schema):
        self.schema = schema

    async def execute_operation(self, request: OperationRequest, context_value: Any = None):
        result = await self.schema.execute(
            request.query,
            variable_values=request.variables,
            context_value=context_value,
            operation_name=request.operation_name,
        )

        # Incremental delivery (@defer / @stream) results carry an initial
        # payload and an async iterator of patches
        if hasattr(result, 'initial_result') and hasattr(result, 'subsequent_results'):
            return IncrementalResponse(
                initial_result=format_result(result.initial_result),
                subsequent_results=_format_stream(result.subsequent_results),
            )

        return SingleResponse(single_result=format_result(result))
