from __future__ import annotations

from django.urls import path

from .views import (
    CurrentImageryView,
    DateNavigationView,
    DaySummaryView,
    HistoryView,
    PolygonDetailView,
    PolygonListView,
    PolygonSelectView,
)

urlpatterns = [
    path(
        "fields/polygons/",
        PolygonListView.as_view(),
        name="fields-polygons",
    ),
    path(
        "fields/polygons/<str:polygon_id>/",
        PolygonDetailView.as_view(),
        name="fields-polygon-detail",
    ),
    path(
        "fields/polygons/<str:polygon_id>/select/",
        PolygonSelectView.as_view(),
        name="fields-polygon-select",
    ),
    path(
        "fields/navigation/",
        DateNavigationView.as_view(),
        name="fields-navigation",
    ),
    path(
        "fields/imagery/",
        CurrentImageryView.as_view(),
        name="fields-imagery",
    ),
    path(
        "fields/history/",
        HistoryView.as_view(),
        name="fields-history",
    ),
    path(
        "fields/history/<str:day>/",
        DaySummaryView.as_view(),
        name="fields-day-summary",
    ),
]
