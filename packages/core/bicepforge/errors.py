"""Exception types raised by the bicepforge core.

Structural validation problems are never raised; they are returned inside a
ValidationResult. Only the cases below escape to the caller:

    BicepForgeError (base, a ValueError)
    ├── DocumentParseError    - input text is neither JSON nor Bicep
    ├── UsageError            - caller broke a sequencing contract
    ├── ConfigurationError    - required configuration fields are missing
    ├── SchemaLoadError       - a schema source could not supply a document
    └── MetadataProviderError - the live cloud metadata provider failed
"""

from __future__ import annotations


class BicepForgeError(ValueError):
    """Base class for all bicepforge errors."""


class DocumentParseError(BicepForgeError):
    """Raised when user text cannot be parsed into any supported dialect."""

    def __init__(self, message: str, parser_message: str = ""):
        super().__init__(message)
        self.parser_message = parser_message


class UsageError(BicepForgeError):
    """Raised when an operation is invoked out of order or with no work to do."""


class ConfigurationError(BicepForgeError):
    """Raised before generation when required configuration is missing."""

    def __init__(self, message: str, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = list(missing or [])


class SchemaLoadError(BicepForgeError):
    """Raised by a schema source when a named schema is missing or malformed."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Failed to load schema {name!r}: {reason}")
        self.name = name
        self.reason = reason


class MetadataProviderError(BicepForgeError):
    """Raised by a live metadata provider when the cloud query fails."""
