"""drf-spectacular helpers for documenting the project's response envelopes.

`config.api.responses` and the global DRF exception handler wrap every API
response in the same JSON envelope. These helpers generate matching
serializers for the OpenAPI schema without changing runtime behavior.
"""

from __future__ import annotations

from drf_spectacular.utils import inline_serializer
from rest_framework import serializers
from rest_framework.serializers import Serializer


def success_envelope_serializer(
    name: str,
    *,
    data: serializers.Field,
) -> Serializer:
    """Build an OpenAPI schema matching `success_response`."""

    return inline_serializer(
        name=name,
        fields={
            "status": serializers.IntegerField(),
            "message": serializers.CharField(),
            "data": data,
            "errors": serializers.JSONField(allow_null=True),
        },
    )


def error_envelope_serializer(name: str) -> Serializer:
    """Build an OpenAPI schema matching `agro_error_response`.

    Request validation failures share the envelope; their `errors` holds
    the field messages instead of a classification.
    """

    return inline_serializer(
        name=name,
        fields={
            "status": serializers.IntegerField(),
            "message": serializers.CharField(),
            "data": serializers.JSONField(allow_null=True),
            "errors": inline_serializer(
                name=f"{name}Detail",
                fields={
                    "code": serializers.CharField(),
                    "upstream_status": serializers.IntegerField(
                        allow_null=True
                    ),
                    "remediation": serializers.CharField(),
                    "transient": serializers.BooleanField(),
                },
            ),
        },
    )
