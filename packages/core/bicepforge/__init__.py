"""bicepforge: validate, generate and convert Azure Bicep infrastructure code."""

from bicepforge.errors import (
    BicepForgeError,
    ConfigurationError,
    DocumentParseError,
    MetadataProviderError,
    SchemaLoadError,
    UsageError,
)
from bicepforge.models import GenerationConfig, ResourceTypeCheck, ValidationCheck, ValidationResult

__version__ = "0.1.0"

__all__ = [
    "ArmConverter",
    "AssemblyResult",
    "BicepForgeError",
    "ConfigurationError",
    "ConversionResult",
    "DocumentParseError",
    "GeneratedDocument",
    "GenerationConfig",
    "GenerationContext",
    "MetadataProviderError",
    "ResourceTypeCheck",
    "SchemaLoadError",
    "TemplateAnalysis",
    "UsageError",
    "ValidationCheck",
    "ValidationResult",
    "analyze",
    "assemble",
    "classify_text",
    "convert",
    "generate",
    "get_registry",
    "starter_schema",
    "validate_document",
]


def __getattr__(name: str):
    # Lazy imports so `import bicepforge` does not load the registry data
    if name in ("ArmConverter", "ConversionResult", "TemplateAnalysis", "analyze", "convert"):
        from bicepforge import converter

        return getattr(converter, name)
    if name in ("AssemblyResult", "assemble"):
        from bicepforge import assembler

        return getattr(assembler, name)
    if name in ("classify_text", "validate_document"):
        from bicepforge import dialect

        return getattr(dialect, name)
    if name == "generate":
        from bicepforge.generator import generate

        return generate
    if name == "GeneratedDocument":
        from bicepforge.declarations import GeneratedDocument

        return GeneratedDocument
    if name == "GenerationContext":
        from bicepforge.context import GenerationContext

        return GenerationContext
    if name == "get_registry":
        from bicepforge.registry import get_registry

        return get_registry
    if name == "starter_schema":
        from bicepforge.templates import starter_schema

        return starter_schema
    raise AttributeError(f"module 'bicepforge' has no attribute {name!r}")
