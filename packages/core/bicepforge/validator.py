"""Structural validation for resource schemas, deployment templates and Bicep text.

These checks are heuristic: they catch the shape problems a user can fix in an
editor, not what Azure would reject at deploy time. Nothing here raises for a
bad document; problems come back as errors and warnings on a ValidationResult.
"""

from __future__ import annotations

import json
import re
from typing import Any

from bicepforge.models import ValidationCheck, ValidationResult

API_VERSION_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}(-preview)?$")

JSON_SCHEMA_TYPES = ("object", "array", "string", "number", "integer", "boolean", "null")
AZURE_RESOURCE_PROPERTIES = ("apiVersion", "type", "name", "location", "properties")

_BICEP_DECLARATIONS = ("param", "var", "output", "resource", "module")
_BRACKETS = (("{", "}", "braces"), ("[", "]", "brackets"))


def validate_resource_schema(schema: Any) -> ValidationResult:
    """Check a JSON Schema resource definition.

    Only a missing ``type`` makes the schema invalid; everything else is a
    warning or informational note.
    """
    result = ValidationResult(dialect="resource_schema")
    if not isinstance(schema, dict):
        result.errors.append("Schema must be a JSON object")
        return result

    declared_schema = schema.get("$schema")
    if not declared_schema:
        result.warnings.append("Missing $schema property - recommended for JSON Schema validation")
    elif not str(declared_schema).startswith("http"):
        result.warnings.append("$schema should be a URI")

    schema_type = schema.get("type")
    if not schema_type:
        result.errors.append('Missing required "type" property')
    elif isinstance(schema_type, str) and schema_type not in JSON_SCHEMA_TYPES:
        result.warnings.append(f"Unrecognised JSON Schema type: {schema_type}")

    if not schema.get("title") and not schema.get("description"):
        result.warnings.append("Consider adding title or description for better documentation")

    props = schema.get("properties")
    if props is not None and not isinstance(props, dict):
        result.warnings.append("properties should be an object")
        props = None
    if props:
        _check_resource_properties(props, result)

    result.info.append(f"Schema type: {schema_type or 'unknown'}")
    result.info.append(f"Properties defined: {len(props or {})}")
    return result


def _check_resource_properties(props: dict[str, Any], result: ValidationResult) -> None:
    found = [name for name in AZURE_RESOURCE_PROPERTIES if props.get(name)]
    if found:
        result.info.append(f"Azure resource properties detected: {', '.join(found)}")

    api = props.get("apiVersion")
    if isinstance(api, dict):
        enum = api.get("enum")
        if isinstance(enum, list):
            malformed = [str(v) for v in enum if not API_VERSION_FORMAT.match(str(v))]
            if malformed:
                result.warnings.append(f"Invalid API version format: {', '.join(malformed)}")
        elif not api.get("pattern"):
            result.warnings.append("apiVersion should specify allowed values with enum or pattern")

    name = props.get("name")
    if isinstance(name, dict):
        if not name.get("pattern") and not name.get("minLength"):
            result.warnings.append("Consider adding validation pattern for resource name")
        if name.get("pattern"):
            try:
                re.compile(str(name["pattern"]))
            except re.error as e:
                result.warnings.append(f"Invalid name pattern: {e}")


def is_template(doc: Any) -> bool:
    """True when a parsed document has the deployment-template markers."""
    return isinstance(doc, dict) and "$schema" in doc and "resources" in doc


def validate_template(doc: Any) -> ValidationResult:
    """Check the envelope of a deployment template and summarise its contents."""
    result = ValidationResult(dialect="deployment_template")
    if not isinstance(doc, dict):
        result.errors.append("Template must be a JSON object")
        return result

    declared_schema = doc.get("$schema")
    if not declared_schema:
        result.errors.append("Missing $schema - required for deployment templates")
    elif "deploymentTemplate" not in str(declared_schema):
        result.warnings.append("$schema does not reference a deployment template schema")

    if not doc.get("contentVersion"):
        result.errors.append("Missing contentVersion - required for deployment templates")

    resources = doc.get("resources")
    if not isinstance(resources, list):
        result.errors.append("Missing or invalid resources array")
    else:
        result.info.append(f"Template contains {len(resources)} resource(s)")
        for i, entry in enumerate(resources):
            _check_template_entry(i, entry, result)

    for section, noun in (("parameters", "parameter"), ("variables", "variable"), ("outputs", "output")):
        if isinstance(doc.get(section), dict):
            result.info.append(f"Template has {len(doc[section])} {noun}(s)")
    return result


def _check_template_entry(index: int, entry: Any, result: ValidationResult) -> None:
    if not isinstance(entry, dict):
        result.warnings.append(f"Resource #{index + 1} is not an object")
        return
    missing = [key for key in ("type", "apiVersion") if not entry.get(key)]
    if missing:
        result.warnings.append(f"Resource #{index + 1} is missing {' and '.join(missing)}")
        return
    result.info.append(f"{entry['type']} ({entry['apiVersion']})")


def _count_declarations(code: str, keyword: str) -> int:
    return len(re.findall(rf"^\s*{keyword}\s+\w+", code, flags=re.MULTILINE))


def validate_bicep(code: str) -> ValidationResult:
    """Lint Bicep text: declaration counts and bracket balance."""
    result = ValidationResult(dialect="bicep")
    if "resource " not in code:
        result.warnings.append("No resources found in template")

    for keyword in _BICEP_DECLARATIONS:
        count = _count_declarations(code, keyword)
        if count:
            result.info.append(f"Found {count} {keyword} declaration(s)")

    for opening, closing, label in _BRACKETS:
        opened, closed = code.count(opening), code.count(closing)
        if opened != closed:
            result.errors.append(f"Mismatched {label}: {opened} opening, {closed} closing")
    return result


def _syntax_check(passed: bool, detail: str) -> ValidationCheck:
    return ValidationCheck(
        name="Syntax Validation", description="Code is syntactically valid", passed=passed, detail=detail
    )


def run_checks(code: str, dialect: str) -> list[ValidationCheck]:
    """Run the named pass/fail checks for a piece of code in the given dialect."""
    checks: list[ValidationCheck] = []
    if dialect == "bicep":
        checks.append(_syntax_check(True, "Code parsed successfully"))
        has_resource = "resource " in code
        checks.append(
            ValidationCheck(
                name="Resource Declaration",
                description="Contains resource declarations",
                passed=has_resource,
                detail="Found resource declarations" if has_resource else "No resource declarations found",
            )
        )
        has_param = "param " in code
        checks.append(
            ValidationCheck(
                name="Parameter Usage",
                description="Uses parameters for configurability",
                passed=has_param,
                detail="Found parameter declarations" if has_param else "No parameters found",
            )
        )
    else:
        try:
            parsed = json.loads(code)
        except json.JSONDecodeError as e:
            return [_syntax_check(False, f"Parse error: {e}")]
        checks.append(_syntax_check(True, "Code parsed successfully"))
        parsed = parsed if isinstance(parsed, dict) else {}
        if dialect == "deployment_template":
            checks += _template_checks(parsed)
        else:
            checks += _schema_checks(parsed)

    line_count = len(code.split("\n"))
    checks.append(
        ValidationCheck(
            name="Code Size",
            description="Reasonable code size",
            passed=5 < line_count < 1000,
            detail=f"{line_count} lines of code",
        )
    )
    return checks


def _template_checks(parsed: dict[str, Any]) -> list[ValidationCheck]:
    schema = str(parsed.get("$schema") or "")
    version = parsed.get("contentVersion")
    resources = parsed.get("resources")
    return [
        ValidationCheck(
            name="ARM Schema",
            description="Has valid ARM template schema",
            passed="deploymentTemplate.json" in schema,
            detail=f"Schema: {schema}" if schema else "No schema specified",
        ),
        ValidationCheck(
            name="Content Version",
            description="Has content version",
            passed=bool(version),
            detail=f"Version: {version}" if version else "No content version",
        ),
        ValidationCheck(
            name="Resources Array",
            description="Contains resources array",
            passed=isinstance(resources, list),
            detail=f"{len(resources)} resources" if isinstance(resources, list) else "No resources array",
        ),
    ]


def _schema_checks(parsed: dict[str, Any]) -> list[ValidationCheck]:
    return [
        ValidationCheck(
            name="Schema Declaration",
            description="Has JSON Schema declaration",
            passed=bool(parsed.get("$schema")),
            detail=str(parsed.get("$schema") or "No $schema property"),
        ),
        ValidationCheck(
            name="Type Definition",
            description="Has type definition",
            passed=bool(parsed.get("type")),
            detail=str(parsed.get("type") or "No type specified"),
        ),
    ]
