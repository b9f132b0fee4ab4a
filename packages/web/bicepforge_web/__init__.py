"""bicepforge web: FastAPI backend for the Bicep toolkit."""

__version__ = "0.1.0"


def __getattr__(name: str):
    if name == "app":
        from bicepforge_web.app import app

        return app
    raise AttributeError(f"module 'bicepforge_web' has no attribute {name!r}")
