"""Classify user text into one of the three supported dialects.

This is the single place raw text is parsed. Everything downstream receives a
ClassifiedDocument and never re-guesses what it is looking at.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bicepforge.errors import DocumentParseError
from bicepforge.models import ValidationResult
from bicepforge.validator import is_template, validate_bicep, validate_resource_schema, validate_template

_BICEP_MARKERS = ("resource ", "param ", "@description")


class DocumentKind(str, Enum):
    RESOURCE_SCHEMA = "resource_schema"
    DEPLOYMENT_TEMPLATE = "deployment_template"
    BICEP = "bicep"


@dataclass(frozen=True)
class ClassifiedDocument:
    kind: DocumentKind
    text: str
    data: dict[str, Any] | None = None


def classify_text(text: str) -> ClassifiedDocument:
    """Parse text once and tag it with its dialect.

    JSON objects that look like deployment templates are templates; any other
    JSON object is a resource schema; non-JSON text with Bicep markers is
    Bicep. Anything else raises DocumentParseError.
    """
    stripped = (text or "").strip()
    if not stripped:
        raise DocumentParseError("Please provide a schema, template or Bicep code to validate")

    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        if any(marker in stripped for marker in _BICEP_MARKERS):
            return ClassifiedDocument(kind=DocumentKind.BICEP, text=stripped)
        if '"$schema"' in stripped or '"resources"' in stripped:
            raise DocumentParseError(
                f"Invalid JSON format. Please check your deployment template syntax: {e}", str(e)
            ) from e
        raise DocumentParseError(f"Unsupported content: not JSON or Bicep ({e})", str(e)) from e

    if not isinstance(data, dict):
        raise DocumentParseError(f"Expected a JSON object, got {type(data).__name__}")
    if is_template(data):
        return ClassifiedDocument(kind=DocumentKind.DEPLOYMENT_TEMPLATE, text=stripped, data=data)
    return ClassifiedDocument(kind=DocumentKind.RESOURCE_SCHEMA, text=stripped, data=data)


def validate_classified(doc: ClassifiedDocument) -> ValidationResult:
    if doc.kind is DocumentKind.DEPLOYMENT_TEMPLATE:
        return validate_template(doc.data)
    if doc.kind is DocumentKind.BICEP:
        return validate_bicep(doc.text)
    return validate_resource_schema(doc.data)


def validate_document(text: str) -> ValidationResult:
    """Classify once and run the matching validator."""
    return validate_classified(classify_text(text))
