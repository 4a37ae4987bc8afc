from __future__ import annotations

# ruff: noqa: S101
import httpx
import pytest

from ndvi.errors import (
    MAX_ERROR_SNIPPET_CHARS,
    ErrorClassifier,
    FeatureUnavailable,
    InvalidSearchParameters,
    NoData,
    NotFound,
    Operation,
    PermissionDenied,
    UpstreamRejected,
    UpstreamUnavailable,
    extract_message,
)


@pytest.mark.parametrize(
    ("operation", "status_code", "expected"),
    [
        (Operation.NDVI_HISTORY, 403, PermissionDenied),
        (Operation.NDVI_HISTORY, 404, FeatureUnavailable),
        (Operation.NDVI_HISTORY, 400, UpstreamUnavailable),
        (Operation.LIST_POLYGONS, 404, UpstreamUnavailable),
        (Operation.IMAGE_SEARCH, 400, InvalidSearchParameters),
        (Operation.IMAGE_SEARCH, 401, PermissionDenied),
        (Operation.GET_POLYGON, 404, NotFound),
        (Operation.CREATE_POLYGON, 422, UpstreamRejected),
        (Operation.CREATE_POLYGON, 401, UpstreamRejected),
        (Operation.CREATE_POLYGON, 403, UpstreamRejected),
        (Operation.CREATE_POLYGON, 404, UpstreamRejected),
        (Operation.CREATE_POLYGON, 500, UpstreamUnavailable),
        (Operation.DELETE_POLYGON, 502, UpstreamUnavailable),
    ],
)
def test_classify_maps_status_per_operation(
    operation: Operation, status_code: int, expected: type[Exception]
) -> None:
    error = ErrorClassifier().classify(operation, status_code)
    assert type(error) is expected
    assert error.upstream_status == status_code


def test_create_rejection_keeps_provider_message() -> None:
    error = ErrorClassifier().classify(
        Operation.CREATE_POLYGON, 403, "Polygon area exceeds quota"
    )
    assert isinstance(error, UpstreamRejected)
    assert error.message == "Polygon area exceeds quota"
    assert error.code == "upstream_rejected"
    assert error.transient is False


def test_history_errors_carry_permission_hints() -> None:
    classifier = ErrorClassifier()
    denied = classifier.classify(Operation.NDVI_HISTORY, 403)
    missing = classifier.classify(Operation.NDVI_HISTORY, 404)
    assert "does not have access" in denied.message
    assert "check API permissions" in missing.message


def test_unavailable_fallback_uses_status_message() -> None:
    error = ErrorClassifier().classify(Operation.LIST_POLYGONS, 500)
    assert error.message == "HTTP error! status: 500"
    assert error.transient is True


def test_provider_message_is_preserved() -> None:
    error = ErrorClassifier().classify(
        Operation.CREATE_POLYGON, 422, "Area is too big"
    )
    assert error.message == "Area is too big"
    assert error.as_dict()["code"] == "upstream_rejected"


def test_no_data_remediation_lists_reasons() -> None:
    error = NoData()
    assert error.http_status == 404
    assert "2-5 days" in error.remediation
    assert "Corporate account" in error.remediation
    assert "Cloud coverage" in error.remediation


def test_classify_transport_is_unavailable() -> None:
    error = ErrorClassifier().classify_transport(
        Operation.IMAGE_SEARCH, httpx.ConnectTimeout("slow")
    )
    assert isinstance(error, UpstreamUnavailable)
    assert "ConnectTimeout" in error.message


def test_extract_message_prefers_json_message() -> None:
    response = httpx.Response(400, json={"message": "bad polygon"})
    assert extract_message(response) == "bad polygon"


def test_extract_message_truncates_text_body() -> None:
    response = httpx.Response(500, text="x" * 500)
    message = extract_message(response)
    assert message is not None
    assert len(message) == MAX_ERROR_SNIPPET_CHARS


def test_extract_message_empty_body() -> None:
    assert extract_message(httpx.Response(502)) is None
