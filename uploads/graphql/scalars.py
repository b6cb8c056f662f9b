"""GraphQL Upload scalar"""
from typing import NewType

import strawberry
from graphql import GraphQLError

from uploads.pending import PendingUpload


def parse_upload_value(value):
    if isinstance(value, PendingUpload):
        return value
    raise GraphQLError("Upload value invalid.")


def parse_upload_literal(value_node, _variables=None):
    raise GraphQLError("Upload literal unsupported.", nodes=value_node)


def serialize_upload(value):
    raise GraphQLError("Upload serialization unsupported.")


# Resolvers receive the PendingUpload itself and `await` it for the file
Upload = NewType("Upload", object)

# Registered on the schema through StrawberryConfig.scalar_map
UploadDefinition = strawberry.scalar(
    name="Upload",
    description="The Upload scalar type represents a file upload.",
    serialize=serialize_upload,
    parse_value=parse_upload_value,
    parse_literal=parse_upload_literal,
)
