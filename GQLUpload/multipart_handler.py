"""
Multipart request handler for GraphQL uploads
"""
import json
from typing import Any, Dict

from django.http import HttpRequest
from django.http.multipartparser import MultiPartParserError

from uploads.errors import MalformedRequest
from uploads.parts import MultipartParts, RawFilePart

VARIABLES_ROOT = 'variables'


def extract_multipart_parts(request: HttpRequest) -> MultipartParts:
    """
    Split a request in the GraphQL multipart request format:
    https://github.com/jaydenseric/graphql-multipart-request-spec

    Expected format:
    - operations: JSON object with query and variables
    - map: JSON object mapping file keys to variable paths
    - files: uploaded files with keys matching the map

    Returns:
        MultipartParts with files, files_map and operations

    Raises:
        MalformedRequest: body unreadable, or map/operations missing or invalid
    """
    try:
        fields = request.POST
        uploaded_files = request.FILES
    except MultiPartParserError as e:
        raise MalformedRequest(f"Invalid multipart body: {str(e)}")

    files = extract_files(uploaded_files)

    operations_str = fields.get('operations')
    map_str = fields.get('map')
    if not operations_str or not map_str:
        raise MalformedRequest("Missing map or operations in form data.")

    operations = parse_json_object(operations_str, 'operations')
    files_map = parse_json_object(map_str, 'map')

    validate_operations(operations)
    validate_files_map(files_map)

    return MultipartParts(files=files, files_map=files_map, operations=operations)


def extract_files(uploaded_files) -> Dict[str, RawFilePart]:
    """Collect every part that carries a file name and a byte length"""
    files = {}
    for key, value in uploaded_files.items():
        if getattr(value, 'name', None) is not None and hasattr(value, 'size'):
            files[key] = RawFilePart.from_uploaded_file(value)
    return files


def parse_json_object(raw: str, field_name: str) -> Dict[str, Any]:
    try:
        result = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedRequest(f"Invalid JSON in '{field_name}': {str(e)}")

    if not isinstance(result, dict):
        raise MalformedRequest(f"Invalid JSON structure in '{field_name}': not an object.")
    return result


def validate_operations(operations: Dict[str, Any]) -> None:
    if not isinstance(operations.get('query'), str):
        raise MalformedRequest("The 'operations' value must contain a 'query' string.")

    variables = operations.get('variables')
    if variables is None:
        operations['variables'] = {}
    elif not isinstance(variables, dict):
        raise MalformedRequest("The 'operations' variables must be an object.")


def validate_files_map(files_map: Dict[str, Any]) -> None:
    """
    Each map value must be a list of dot paths rooted at `variables`.

    Example: {"0": ["variables.file"], "1": ["variables.files.0", "variables.files.1"]}
    """
    for file_key, paths in files_map.items():
        if not isinstance(paths, list) or not all(isinstance(path, str) and path for path in paths):
            raise MalformedRequest(
                f"The 'map' entry '{file_key}' must be a list of variable paths."
            )

        for path in paths:
            if not path.startswith(f"{VARIABLES_ROOT}."):
                raise MalformedRequest(
                    f"Variable path '{path}' must start with '{VARIABLES_ROOT}.'."
                )
