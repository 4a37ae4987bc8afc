"""Field and NDVI endpoints backing the map/dashboard UI.

Authentication: none; callers pick a workspace with `X-Workspace-Id`.
Responses: wrapped by `config.api.responses.success_response`
(status/message/data/errors). Classified provider failures are rendered
by `config.api.exceptions.custom_exception_handler`.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiTypes,
    extend_schema,
    inline_serializer,
)
from rest_framework import serializers, status
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from config.api.openapi import (
    error_envelope_serializer,
    success_envelope_serializer,
)
from config.api.responses import JSONValue, success_response

from .serializers import (
    DateWindowSerializer,
    HistoryEntrySerializer,
    HistoryQuerySerializer,
    ImageryRecordSerializer,
    NavigationRequestSerializer,
    PolygonCreateSerializer,
    PolygonSerializer,
    serialize_history,
    serialize_imagery,
    serialize_navigation,
    serialize_polygon,
    serialize_polygons,
    serialize_selection,
    serialize_window,
)
from .sessions import TIMEZONE_HEADER, WORKSPACE_HEADER, run_in_workspace
from .workspace import FieldWorkspace

fields_error_schema = error_envelope_serializer("FieldsErrorResponse")

_imagery_data = inline_serializer(
    name="FieldsImageryData",
    fields={
        "polygon_id": serializers.CharField(),
        "day": serializers.DateField(),
        "records": ImageryRecordSerializer(many=True),
        "default_overlay": serializers.CharField(allow_null=True),
        "stale": serializers.BooleanField(),
    },
)

polygon_list_success_schema = success_envelope_serializer(
    "FieldsPolygonListSuccess",
    data=inline_serializer(
        name="FieldsPolygonListData",
        fields={
            "polygons": PolygonSerializer(many=True),
            "selected_id": serializers.CharField(allow_null=True),
        },
    ),
)
polygon_success_schema = success_envelope_serializer(
    "FieldsPolygonSuccess", data=PolygonSerializer()
)
selection_success_schema = success_envelope_serializer(
    "FieldsSelectionSuccess",
    data=inline_serializer(
        name="FieldsSelectionData",
        fields={
            "polygon": PolygonSerializer(),
            "window": DateWindowSerializer(),
            "history": HistoryEntrySerializer(many=True),
            "imagery": _imagery_data,
            "errors": serializers.JSONField(),
            "stale": serializers.BooleanField(),
        },
    ),
)
delete_success_schema = success_envelope_serializer(
    "FieldsPolygonDeleteSuccess",
    data=inline_serializer(
        name="FieldsPolygonDeleteData",
        fields={
            "id": serializers.CharField(),
            "was_selected": serializers.BooleanField(),
        },
    ),
)
navigation_success_schema = success_envelope_serializer(
    "FieldsNavigationSuccess",
    data=inline_serializer(
        name="FieldsNavigationData",
        fields={
            "moved": serializers.BooleanField(),
            "window": DateWindowSerializer(),
            "imagery": _imagery_data,
        },
    ),
)
imagery_success_schema = success_envelope_serializer(
    "FieldsImagerySuccess", data=_imagery_data
)
history_success_schema = success_envelope_serializer(
    "FieldsHistorySuccess",
    data=inline_serializer(
        name="FieldsHistoryData",
        fields={
            "polygon_id": serializers.CharField(),
            "entries": HistoryEntrySerializer(many=True),
            "window": DateWindowSerializer(),
        },
    ),
)
day_summary_success_schema = success_envelope_serializer(
    "FieldsDaySummarySuccess",
    data=inline_serializer(
        name="FieldsDaySummaryData",
        fields={
            "day": serializers.DateField(),
            "entry": HistoryEntrySerializer(allow_null=True),
        },
    ),
)

WORKSPACE_PARAMETERS = [
    OpenApiParameter(
        name=WORKSPACE_HEADER,
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="Workspace holding the selection (default `default`)",
    ),
    OpenApiParameter(
        name=TIMEZONE_HEADER,
        type=OpenApiTypes.STR,
        location=OpenApiParameter.HEADER,
        required=False,
        description="IANA timezone used when the workspace is created",
    ),
]

_ERRORS = {
    400: fields_error_schema,
    404: fields_error_schema,
    422: fields_error_schema,
    502: fields_error_schema,
    503: fields_error_schema,
}


class _DayPathSerializer(serializers.Serializer):
    day = serializers.DateField()


class BaseFieldsView(APIView):
    permission_classes = [AllowAny]


class PolygonListView(BaseFieldsView):
    """List provider polygons or register a new one.

    Response: success envelope with polygons in map and provider order.
    """

    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        responses={200: polygon_list_success_schema, **_ERRORS},
    )
    def get(self, request: Request) -> Response:
        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            polygons = await workspace.list_polygons()
            return {
                "polygons": serialize_polygons(polygons),
                "selected_id": workspace.store.selected_id,
            }

        return success_response(run_in_workspace(request, op))

    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        request=PolygonCreateSerializer,
        responses={201: polygon_success_schema, **_ERRORS},
    )
    def post(self, request: Request) -> Response:
        """Create a polygon from a drawn ring in [lat, lon] order.

        The ring is rounded, closed and converted to [lon, lat] before the
        provider sees it; open rings are rejected with `invalid_geometry`.
        """

        serializer = PolygonCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            polygon = await workspace.create_polygon(
                str(params["name"]), params["rings"]
            )
            return serialize_polygon(polygon)

        return success_response(
            run_in_workspace(request, op),
            "Created",
            status_code=status.HTTP_201_CREATED,
        )


class PolygonSelectView(BaseFieldsView):
    """Select a polygon and load its history and newest imagery.

    History and imagery failures do not fail the selection; they are
    reported under `errors` with their classification.
    """

    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        request=None,
        responses={200: selection_success_schema, **_ERRORS},
    )
    def post(self, request: Request, polygon_id: str) -> Response:
        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            selection = await workspace.select_polygon(polygon_id)
            return serialize_selection(selection)

        return success_response(run_in_workspace(request, op))


class PolygonDetailView(BaseFieldsView):
    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        responses={200: delete_success_schema, **_ERRORS},
    )
    def delete(self, request: Request, polygon_id: str) -> Response:
        """Delete a polygon; clears the selection if it was selected."""

        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            was_selected = await workspace.delete_polygon(polygon_id)
            return {"id": polygon_id, "was_selected": was_selected}

        return success_response(run_in_workspace(request, op), "Deleted")


class DateNavigationView(BaseFieldsView):
    """Move the selected date by `delta` days or jump to `date`.

    Forward steps past the viewer's today are clamped; a step that cannot
    move reports `moved: false`.
    """

    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        request=NavigationRequestSerializer,
        responses={200: navigation_success_schema, **_ERRORS},
    )
    def post(self, request: Request) -> Response:
        serializer = NavigationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            navigation = await workspace.navigate_date(
                delta=params.get("delta"), explicit=params.get("date")
            )
            return serialize_navigation(navigation)

        return success_response(run_in_workspace(request, op))


class CurrentImageryView(BaseFieldsView):
    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        responses={200: imagery_success_schema, **_ERRORS},
    )
    def get(self, request: Request) -> Response:
        """Return imagery for the selected polygon and date."""

        async def op(workspace: FieldWorkspace) -> JSONValue:
            view = await workspace.get_current_imagery()
            return serialize_imagery(view)

        return success_response(run_in_workspace(request, op))


class HistoryView(BaseFieldsView):
    """NDVI history of the selected polygon, newest first.

    Served from the workspace cache unless `refresh=true`.
    """

    @extend_schema(
        parameters=[
            *WORKSPACE_PARAMETERS,
            OpenApiParameter(
                name="refresh",
                type=OpenApiTypes.BOOL,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Refetch history from the provider",
            ),
        ],
        responses={200: history_success_schema, **_ERRORS},
    )
    def get(self, request: Request) -> Response:
        serializer = HistoryQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        refresh = bool(serializer.validated_data["refresh"])

        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            entries = await workspace.get_history(refresh=refresh)
            cache = workspace.cache
            return {
                "polygon_id": cache.polygon_id if cache else None,
                "entries": serialize_history(entries),
                "window": serialize_window(workspace.window),
            }

        return success_response(run_in_workspace(request, op))


class DaySummaryView(BaseFieldsView):
    @extend_schema(
        parameters=WORKSPACE_PARAMETERS,
        responses={200: day_summary_success_schema, **_ERRORS},
    )
    def get(self, request: Request, day: str) -> Response:
        """Return the first NDVI observation on a UTC day, or null."""

        serializer = _DayPathSerializer(data={"day": day})
        serializer.is_valid(raise_exception=True)
        target = serializer.validated_data["day"]

        async def op(workspace: FieldWorkspace) -> dict[str, JSONValue]:
            entry = await workspace.get_day_summary(target)
            return {
                "day": target.isoformat(),
                "entry": (
                    serialize_history([entry])[0] if entry else None
                ),
            }

        return success_response(run_in_workspace(request, op))
