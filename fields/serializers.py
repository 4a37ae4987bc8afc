from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar

from rest_framework import serializers

from config.api.responses import JSONValue
from ndvi.engines.types import (
    DateWindow,
    ImageryRecord,
    NdviHistoryEntry,
    Polygon,
)

from .geometry import bounds, to_map_ring
from .workspace import ImageryView, Navigation, Selection


def _point() -> serializers.ListField:
    return serializers.ListField(
        child=serializers.FloatField(), min_length=2, max_length=2
    )


class PolygonCreateSerializer(serializers.Serializer):
    """Drawn polygon in map order: [[lat, lon], ...] per ring."""

    name: ClassVar[serializers.CharField] = serializers.CharField(
        max_length=255, default="My Field"
    )
    ring: ClassVar[serializers.ListField] = serializers.ListField(
        child=_point(), required=False
    )
    rings: ClassVar[serializers.ListField] = serializers.ListField(
        child=serializers.ListField(child=_point()), required=False
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        ring = attrs.pop("ring", None)
        rings = attrs.get("rings")
        if (ring is None) == (rings is None):
            raise serializers.ValidationError(
                "Provide exactly one of ring or rings."
            )
        if ring is not None:
            attrs["rings"] = [ring]
        return attrs


class NavigationRequestSerializer(serializers.Serializer):
    delta: ClassVar[serializers.IntegerField] = serializers.IntegerField(
        required=False, min_value=-366, max_value=366
    )
    date: ClassVar[serializers.DateField] = serializers.DateField(
        required=False
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        if ("delta" in attrs) == ("date" in attrs):
            raise serializers.ValidationError(
                "Provide exactly one of delta or date."
            )
        return attrs


class HistoryQuerySerializer(serializers.Serializer):
    refresh: ClassVar[serializers.BooleanField] = serializers.BooleanField(
        required=False, default=False
    )


class PolygonSerializer(serializers.Serializer):
    id: ClassVar[serializers.CharField] = serializers.CharField()
    name: ClassVar[serializers.CharField] = serializers.CharField()
    area: ClassVar[serializers.FloatField] = serializers.FloatField()
    center: ClassVar[serializers.ListField] = serializers.ListField(
        child=serializers.FloatField()
    )
    rings: ClassVar[serializers.SerializerMethodField] = (
        serializers.SerializerMethodField()
    )
    map_ring: ClassVar[serializers.SerializerMethodField] = (
        serializers.SerializerMethodField()
    )
    bounds: ClassVar[serializers.SerializerMethodField] = (
        serializers.SerializerMethodField()
    )
    created_at: ClassVar[serializers.DateTimeField] = (
        serializers.DateTimeField(allow_null=True)
    )

    def get_rings(self, obj: Polygon) -> list[list[list[float]]]:
        return [[list(point) for point in ring] for ring in obj.rings]

    def get_map_ring(self, obj: Polygon) -> list[list[float]]:
        return to_map_ring(obj.ring)

    def get_bounds(self, obj: Polygon) -> list[float]:
        return list(bounds(obj.ring))


class IndexStatsSerializer(serializers.Serializer):
    mean: ClassVar[serializers.FloatField] = serializers.FloatField()
    min: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )
    max: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )
    median: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )
    std: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )


class ImageryRecordSerializer(serializers.Serializer):
    date: ClassVar[serializers.DateTimeField] = serializers.DateTimeField()
    source_satellite: ClassVar[serializers.SerializerMethodField] = (
        serializers.SerializerMethodField()
    )
    stats_by_index: ClassVar[serializers.SerializerMethodField] = (
        serializers.SerializerMethodField()
    )
    overlay_tile_url: ClassVar[serializers.CharField] = (
        serializers.CharField()
    )
    raw_ndvi_tile_url: ClassVar[serializers.CharField] = (
        serializers.CharField()
    )
    cloud_coverage: ClassVar[serializers.FloatField] = (
        serializers.FloatField(allow_null=True)
    )
    data_coverage: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )

    def get_source_satellite(self, obj: ImageryRecord) -> str:
        return obj.source_satellite.value

    def get_stats_by_index(
        self, obj: ImageryRecord
    ) -> dict[str, dict[str, Any]]:
        return {
            index: dict(IndexStatsSerializer(stats).data)
            for index, stats in obj.stats_by_index.items()
        }


class HistoryEntrySerializer(serializers.Serializer):
    timestamp: ClassVar[serializers.IntegerField] = (
        serializers.IntegerField()
    )
    day: ClassVar[serializers.DateField] = serializers.DateField()
    source: ClassVar[serializers.CharField] = serializers.CharField()
    mean: ClassVar[serializers.FloatField] = serializers.FloatField()
    min: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )
    max: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )
    std: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )


class DateWindowSerializer(serializers.Serializer):
    selected_date: ClassVar[serializers.DateField] = serializers.DateField()
    available_dates: ClassVar[serializers.ListField] = (
        serializers.ListField(child=serializers.DateField())
    )


def serialize_polygon(polygon: Polygon) -> dict[str, JSONValue]:
    return dict(PolygonSerializer(polygon).data)


def serialize_polygons(
    polygons: Sequence[Polygon],
) -> list[dict[str, JSONValue]]:
    return [serialize_polygon(polygon) for polygon in polygons]


def serialize_history(
    entries: Sequence[NdviHistoryEntry],
) -> list[dict[str, JSONValue]]:
    return list(HistoryEntrySerializer(entries, many=True).data)


def serialize_window(
    window: DateWindow | None,
) -> dict[str, JSONValue] | None:
    if window is None:
        return None
    return dict(DateWindowSerializer(window).data)


def serialize_imagery(
    view: ImageryView | None,
) -> dict[str, JSONValue] | None:
    if view is None:
        return None
    return {
        "polygon_id": view.polygon_id,
        "day": view.day.isoformat(),
        "records": list(
            ImageryRecordSerializer(view.records, many=True).data
        ),
        "default_overlay": view.default_overlay,
        "stale": view.stale,
    }


def serialize_selection(selection: Selection) -> dict[str, JSONValue]:
    return {
        "polygon": serialize_polygon(selection.polygon),
        "window": serialize_window(selection.window),
        "history": serialize_history(selection.history),
        "imagery": serialize_imagery(selection.imagery),
        "errors": {
            key: {"message": exc.message, **exc.as_dict()}
            for key, exc in selection.errors.items()
        },
        "stale": selection.stale,
    }


def serialize_navigation(navigation: Navigation) -> dict[str, JSONValue]:
    return {
        "moved": navigation.moved,
        "window": serialize_window(navigation.window),
        "imagery": serialize_imagery(navigation.imagery),
    }
