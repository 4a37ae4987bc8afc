"""URL configuration for the field NDVI service."""

# Routes:
# - GET / -> home
# - /metrics -> Prometheus exposition (django_prometheus)
# - /api/schema/ -> OpenAPI schema
# - /api/docs/ -> Swagger UI
# - /api/redoc/ -> ReDoc
# - /api/v1/fields/ -> fields.urls

from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)

from .views import home

urlpatterns = [
    path("", home, name="home"),
    path("", include("django_prometheus.urls")),
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path(
        "api/docs/",
        SpectacularSwaggerView.as_view(url_name="schema"),
        name="swagger-ui",
    ),
    path(
        "api/redoc/",
        SpectacularRedocView.as_view(url_name="schema"),
        name="redoc",
    ),
    path("api/v1/", include("fields.urls")),
]
