"""
Vaisu - document analysis and visualization API.

Documents are parsed, analyzed by a hosted LLM with task-specific prompts and
turned into visualizations (mind maps, knowledge graphs, UML diagrams,
executive dashboards, ...) persisted in a key-value store. The package also
ships the agent orchestration and scaffolding CLIs used to build features.
"""

__version__ = "1.0.0"


def get_app():
    """
    Return the FastAPI application.

    Imported lazily to avoid loading the web stack for the CLI tools.
    """
    from vaisu.main import app

    return app


def get_settings():
    """Return the application settings instance."""
    from vaisu.core.config import settings

    return settings


__all__ = [
    "__version__",
    "get_app",
    "get_settings",
]
