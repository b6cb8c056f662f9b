"""GraphQL queries for uploads"""
import strawberry


@strawberry.type
class UploadQuery:

    @strawberry.field
    def ping(self) -> bool:
        """Liveness check"""
        return True
