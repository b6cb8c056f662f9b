import strawberry
from strawberry.schema.config import StrawberryConfig

from .queries import UploadQuery
from .mutations import UploadMutation
from .scalars import Upload, UploadDefinition

# ==================================================
# SCHEMA
# ==================================================

@strawberry.type
class Query(UploadQuery):
    pass


@strawberry.type
class Mutation(UploadMutation):
    pass


schema = strawberry.Schema(
    query=Query,
    mutation=Mutation,
    config=StrawberryConfig(scalar_map={Upload: UploadDefinition}),
)
