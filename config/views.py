"""Landing endpoint for the field NDVI service.

Lists the field routes, the headers that scope a workspace and the
configured imagery provider, so a dashboard can bootstrap from `/`.
"""

from __future__ import annotations

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.urls import reverse

from fields.sessions import TIMEZONE_HEADER, WORKSPACE_HEADER

FIELD_ROUTES = (
    "fields-polygons",
    "fields-navigation",
    "fields-imagery",
    "fields-history",
)


def home(request: HttpRequest) -> JsonResponse:
    provider_path = str(settings.AGRO_PROVIDER_PATH)
    return JsonResponse(
        {
            "ok": True,
            "service": "field-ndvi",
            "provider": provider_path.rsplit(".", 1)[-1],
            "history_window_days": settings.NDVI_HISTORY_WINDOW_DAYS,
            "headers": {
                "workspace": WORKSPACE_HEADER,
                "timezone": TIMEZONE_HEADER,
            },
            "routes": {name: reverse(name) for name in FIELD_ROUTES},
            "docs": reverse("swagger-ui"),
        }
    )
