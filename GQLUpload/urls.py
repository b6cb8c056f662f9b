"""
URL configuration for the GQLUpload project.

POST multipart/form-data requests to /graphql/ go through the upload
pipeline; every other GraphQL request is handled by Strawberry unchanged.
"""
import logging

from django.conf import settings
from django.conf.urls.static import static
from django.http import HttpResponse, JsonResponse
from django.urls import path
from django.views.decorators.csrf import csrf_exempt
from strawberry.django.views import AsyncGraphQLView

from uploads.conf import get_upload_settings
from uploads.engine import StrawberryEngine
from uploads.errors import UploadError
from uploads.graphql.schema import schema
from uploads.orchestrator import process_upload_request
from uploads.responses import WireResponse
from .multipart_handler import extract_multipart_parts

logger = logging.getLogger(__name__)


class UploadGraphQLView(AsyncGraphQLView):
    """GraphQL view that resolves multipart file uploads before execution"""

    async def dispatch(self, request, *args, **kwargs):
        """Route multipart POSTs to the upload pipeline"""
        content_type = request.content_type or ""

        if "multipart/form-data" in content_type and request.method == "POST":
            return await self.dispatch_upload(request)

        return await super().dispatch(request, *args, **kwargs)

    async def dispatch_upload(self, request):
        upload_settings = get_upload_settings()

        try:
            parts = extract_multipart_parts(request)
            context = await self.get_context(request, HttpResponse())
            wire_response = await process_upload_request(
                parts,
                engine=StrawberryEngine(self.schema),
                context_value=context,
                allowed_types=upload_settings.allowed_types,
                max_file_size=upload_settings.max_file_size,
                read_timeout=upload_settings.read_timeout,
                strict_paths=upload_settings.strict_paths,
            )
        except UploadError as e:
            logger.warning("Upload request failed (%s): %s", e.status_code, e.message)
            wire_response = WireResponse.from_error(e)
        except Exception as e:
            logger.exception("Unexpected error while processing upload request")
            wire_response = WireResponse(
                payload={"errors": [{"message": f"Error processing upload: {str(e)}"}]},
                status=500,
            )

        return JsonResponse(wire_response.payload, status=wire_response.status)


urlpatterns = [
    path("graphql/", csrf_exempt(UploadGraphQLView.as_view(schema=schema))),
]

# Serve uploaded files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
