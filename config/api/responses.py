from __future__ import annotations

from typing import TYPE_CHECKING, TypeAlias

from rest_framework import status
from rest_framework.response import Response

if TYPE_CHECKING:
    from ndvi.errors import AgroError

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


def success_response(
    data: JSONValue | None,
    message: str = "OK",
    *,
    status_code: int = status.HTTP_200_OK,
) -> Response:
    payload: dict[str, JSONValue] = {
        "status": 0,
        "message": message,
        "data": data,
        "errors": None,
    }
    return Response(payload, status=status_code)


def error_response(
    message: str,
    *,
    errors: JSONValue | None = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    payload: dict[str, JSONValue] = {
        "status": 1,
        "message": message,
        "data": None,
        "errors": errors,
    }
    return Response(payload, status=status_code)


def agro_error_response(exc: AgroError) -> Response:
    """Render a classified failure; `errors` carries code and remediation."""

    return error_response(
        exc.message,
        errors={
            "code": exc.code,
            "upstream_status": exc.upstream_status,
            "remediation": exc.remediation,
            "transient": exc.transient,
        },
        status_code=exc.http_status,
    )
