"""Classification of upstream provider failures.

Every provider call funnels its failures through `ErrorClassifier` so the
store, history and imagery layers surface the same error types with the
same remediation hints.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, ClassVar, Final

import httpx

MAX_ERROR_SNIPPET_CHARS: Final[int] = 200


class Operation(str, Enum):
    LIST_POLYGONS = "list_polygons"
    CREATE_POLYGON = "create_polygon"
    GET_POLYGON = "get_polygon"
    DELETE_POLYGON = "delete_polygon"
    NDVI_HISTORY = "ndvi_history"
    IMAGE_SEARCH = "image_search"
    INDEX_STATS = "index_stats"


class AgroError(Exception):
    """Base class for classified provider and validation failures."""

    code: ClassVar[str] = "agro_error"
    http_status: ClassVar[int] = 500
    transient: ClassVar[bool] = False
    default_message: ClassVar[str] = "Upstream request failed."
    default_remediation: ClassVar[str] = ""

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        remediation: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        self.upstream_status = upstream_status
        if remediation is None:
            remediation = self.default_remediation
        self.remediation = remediation

    def as_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "upstream_status": self.upstream_status,
            "remediation": self.remediation,
        }


class InvalidGeometry(AgroError):
    code = "invalid_geometry"
    http_status = 400
    default_message = "Polygon geometry is invalid."
    default_remediation = (
        "Draw a closed polygon with at least three distinct corners."
    )


class InvalidIdentifier(AgroError):
    code = "invalid_identifier"
    http_status = 400
    default_message = "Invalid polygon ID format (24-character hex string)."
    default_remediation = (
        "Select a polygon from the list of registered fields."
    )


class InvalidSearchParameters(AgroError):
    code = "invalid_search_parameters"
    http_status = 400
    default_message = "Invalid search parameters."
    default_remediation = "Pick a date that is not in the future."


class UpstreamRejected(AgroError):
    code = "upstream_rejected"
    http_status = 422
    default_message = "The provider rejected the request."
    default_remediation = "Check the submitted data and try again."


class UpstreamUnavailable(AgroError):
    code = "upstream_unavailable"
    http_status = 503
    transient = True
    default_message = "The provider is unavailable."
    default_remediation = "Try again in a few moments."


class PermissionDenied(AgroError):
    code = "permission_denied"
    http_status = 502
    default_message = "API key does not have access to this resource."
    default_remediation = "Verify the provider API key and its plan."


class FeatureUnavailable(AgroError):
    code = "feature_unavailable"
    http_status = 502
    default_message = (
        "NDVI history endpoint not found - check API permissions."
    )
    default_remediation = (
        "Verify that the API key includes access to NDVI history."
    )


class NotFound(AgroError):
    code = "not_found"
    http_status = 404
    default_message = "Polygon does not exist or was deleted."
    default_remediation = "Refresh the polygon list."


class NoData(AgroError):
    code = "no_data"
    http_status = 404
    default_message = "No NDVI data found."
    default_remediation = (
        "Possible reasons:\n"
        "- New polygon (takes 2-5 days to process)\n"
        "- Corporate account required for archive data\n"
        "- Cloud coverage exceeded threshold"
    )


_DEFAULT_BY_STATUS: Final[Mapping[int, type[AgroError]]] = {
    401: PermissionDenied,
    403: PermissionDenied,
    404: NotFound,
}

_OVERRIDES: Final[Mapping[Operation, Mapping[int, type[AgroError]]]] = {
    Operation.NDVI_HISTORY: {
        403: PermissionDenied,
        404: FeatureUnavailable,
    },
    Operation.IMAGE_SEARCH: {400: InvalidSearchParameters},
}

# Operations where anything that is not an explicit override is treated
# as the provider being unavailable.
_UNAVAILABLE_FALLBACK: Final[frozenset[Operation]] = frozenset(
    {Operation.LIST_POLYGONS, Operation.NDVI_HISTORY}
)

# Operations where every client error is the provider refusing the payload.
_REJECTED_FALLBACK: Final[frozenset[Operation]] = frozenset(
    {Operation.CREATE_POLYGON}
)


class ErrorClassifier:
    """Map raw upstream failures onto the `AgroError` taxonomy."""

    def classify(
        self,
        operation: Operation,
        status_code: int,
        message: str | None = None,
    ) -> AgroError:
        override = _OVERRIDES.get(operation, {}).get(status_code)
        if override is not None:
            return self._build(override, status_code, message)

        if operation in _REJECTED_FALLBACK and 400 <= status_code < 500:
            return self._build(UpstreamRejected, status_code, message)

        if operation in _UNAVAILABLE_FALLBACK:
            return UpstreamUnavailable(
                message or f"HTTP error! status: {status_code}",
                upstream_status=status_code,
            )

        error_cls = _DEFAULT_BY_STATUS.get(status_code)
        if error_cls is None:
            error_cls = (
                UpstreamUnavailable
                if status_code >= 500
                else UpstreamRejected
            )
        return self._build(error_cls, status_code, message)

    def classify_response(
        self, operation: Operation, response: httpx.Response
    ) -> AgroError:
        return self.classify(
            operation, response.status_code, extract_message(response)
        )

    def classify_transport(
        self, operation: Operation, exc: Exception
    ) -> AgroError:
        return UpstreamUnavailable(
            f"{operation.value} request failed: {exc.__class__.__name__}"
        )

    def _build(
        self,
        error_cls: type[AgroError],
        status_code: int,
        message: str | None,
    ) -> AgroError:
        if error_cls is UpstreamUnavailable and not message:
            message = f"HTTP error! status: {status_code}"
        return error_cls(message, upstream_status=status_code)


def extract_message(response: httpx.Response) -> str | None:
    """Return the provider's error message, if the body carries one."""

    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:MAX_ERROR_SNIPPET_CHARS] or None
    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None
