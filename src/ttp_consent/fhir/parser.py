"""
FHIR JSON Parser

Reads authority responses into fhir.resources models and writes request
documents back to JSON.
"""

import json
from typing import Any, TypeVar

from pydantic import ValidationError

from ttp_consent.fhir.resources import RESOURCE_CLASSES, Resource

R = TypeVar("R", bound=Resource)


class ResourceParseError(ValueError):
    """Raised when a document is not a supported FHIR resource."""


def parse_resource(data: str | bytes | dict[str, Any]) -> Resource:
    """
    Parse a FHIR JSON document.

    Args:
        data: JSON text or an already decoded dict

    Returns:
        The resource model selected by `resourceType`

    Raises:
        ResourceParseError: not JSON, no or unsupported `resourceType`,
            or invalid content
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ResourceParseError(f"Response is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not data.get("resourceType"):
        raise ResourceParseError("Response is not a FHIR resource (missing resourceType)")

    resource_type = data["resourceType"]
    resource_class = RESOURCE_CLASSES.get(resource_type)
    if resource_class is None:
        raise ResourceParseError(f"Unsupported resource type: {resource_type}")

    try:
        return resource_class.model_validate(data)
    except ValidationError as e:
        raise ResourceParseError(
            f"Invalid {resource_type} resource: {e.error_count()} error(s)"
        ) from e


def parse_resource_as(data: str | bytes | dict[str, Any], model: type[R]) -> R:
    """Parse a document and require a specific resource type."""
    resource = parse_resource(data)
    if not isinstance(resource, model):
        raise ResourceParseError(
            f"Expected {model.get_resource_type()}, got {resource.get_resource_type()}"
        )
    return resource


def to_fhir_json(resource: Resource) -> str:
    return resource.model_dump_json(by_alias=True, exclude_none=True)


def to_fhir_dict(resource: Resource) -> dict[str, Any]:
    """Serialize a resource to a JSON-compatible dict with FHIR keys."""
    return json.loads(to_fhir_json(resource))
