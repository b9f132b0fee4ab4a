"""FastAPI backend wrapping the bicepforge core package."""

from __future__ import annotations

import logging
from typing import Any, Literal, NoReturn

from bicepforge.assembler import assemble, load_catalog
from bicepforge.converter import analyze, convert
from bicepforge.dialect import classify_text, validate_classified
from bicepforge.errors import BicepForgeError, ConfigurationError
from bicepforge.exporter import export_schema, package_files
from bicepforge.exporter.parameters import parameters_file
from bicepforge.generator import generate, generate_from_template_entry
from bicepforge.models import GenerationConfig
from bicepforge.registry import get_registry
from bicepforge.templates import enhance_schema, starter_schema, starter_template
from bicepforge.validator import run_checks
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

log = logging.getLogger(__name__)

app = FastAPI(
    title="bicepforge",
    version="0.1.0",
    description="Validate, generate and convert Azure Bicep infrastructure code",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request models ---


class ValidateRequest(BaseModel):
    content: str
    checks: bool = False


class GenerateRequest(BaseModel):
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    template_entry: dict[str, Any] | None = None
    config: dict[str, Any] = Field(default_factory=dict)


class AnalyzeRequest(BaseModel):
    template: dict[str, Any]


class ConvertRequest(BaseModel):
    template: dict[str, Any]
    config: dict[str, Any] = Field(default_factory=dict)


class AssembleRequest(BaseModel):
    resources: list[str] = Field(default_factory=list)
    resource_config: dict[str, dict[str, Any]] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)


class EnhanceRequest(BaseModel):
    schema_: dict[str, Any] = Field(alias="schema")
    format: Literal["json", "yaml"] = "json"


def _raise_for(e: Exception) -> NoReturn:
    """Map core exceptions onto HTTP errors."""
    if isinstance(e, ConfigurationError):
        raise HTTPException(status_code=422, detail={"message": str(e), "missing": e.missing}) from e
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=422, detail=f"Invalid configuration: {e}") from e
    if isinstance(e, BicepForgeError):
        raise HTTPException(status_code=400, detail=str(e)) from e
    log.exception("Request failed")
    raise HTTPException(status_code=500, detail="Internal server error") from e


# --- Endpoints ---


@app.get("/api/health")
def health():
    return {"status": "ok", "registry": get_registry().stats()}


@app.post("/api/validate")
def validate(req: ValidateRequest):
    try:
        doc = classify_text(req.content)
    except Exception as e:
        _raise_for(e)
    result = validate_classified(doc).to_dict()
    if req.checks:
        result["checks"] = [c.model_dump() for c in run_checks(doc.text, doc.kind.value)]
    return result


@app.post("/api/generate")
def generate_bicep(req: GenerateRequest):
    if req.schema_ is None and req.template_entry is None:
        raise HTTPException(status_code=400, detail="Provide either schema or template_entry")
    try:
        config = GenerationConfig.from_mapping(req.config)
        if req.schema_ is not None:
            doc = generate(req.schema_, config)
        else:
            doc = generate_from_template_entry(req.template_entry, config)
    except Exception as e:
        _raise_for(e)
    return {
        "resource_type": doc.resource_type,
        "api_version": doc.api_version,
        "bicep": doc.render(),
        "parameters": parameters_file(doc),
    }


@app.post("/api/analyze")
def analyze_template(req: AnalyzeRequest):
    try:
        return analyze(req.template).to_dict()
    except Exception as e:
        _raise_for(e)


@app.post("/api/convert")
def convert_template(req: ConvertRequest):
    try:
        config = GenerationConfig.from_mapping(req.config)
        analysis = analyze(req.template)
        result = convert(req.template, analysis, config)
    except Exception as e:
        _raise_for(e)
    return {"analysis": analysis.to_dict(), "conversion": result.to_dict()}


@app.post("/api/assemble")
def assemble_resources(req: AssembleRequest):
    try:
        config = GenerationConfig.from_mapping(req.config)
        result = assemble(req.resources, req.resource_config, config)
    except Exception as e:
        _raise_for(e)
    return {**result.to_dict(), "files": package_files(result)}


@app.get("/api/catalog")
def catalog():
    return {
        "resources": [
            {"id": entry.id, "name": entry.name, "schema": entry.schema, "depends_on": list(entry.depends_on)}
            for entry in load_catalog().values()
        ]
    }


@app.get("/api/registry/types")
def registry_types(category: str | None = None):
    registry = get_registry()
    return {
        "types": [info.to_dict() for info in registry.list_types(category)],
        "categories": registry.list_categories(),
    }


@app.get("/api/registry/lookup")
def registry_lookup(resource_type: str, scope: str = "resourceGroup"):
    registry = get_registry()
    info = registry.lookup(resource_type, scope)
    return {
        **info.to_dict(),
        "selected_api_version": registry.select_api_version(None, resource_type),
        "similar_types": [] if info.known else registry.similar_types(resource_type),
    }


@app.get("/api/starter")
def starter(resource_type: str | None = None):
    try:
        return starter_schema(resource_type) if resource_type else starter_template()
    except Exception as e:
        _raise_for(e)


@app.post("/api/enhance")
def enhance(req: EnhanceRequest):
    try:
        enhanced = enhance_schema(req.schema_)
        return {"schema": enhanced, "content": export_schema(enhanced, req.format)}
    except Exception as e:
        _raise_for(e)


def serve(host: str = "127.0.0.1", port: int = 8000):
    """Start the bicepforge web server."""
    import uvicorn

    uvicorn.run("bicepforge_web.app:app", host=host, port=port)
