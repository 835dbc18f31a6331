"""
Core module for application configuration and utilities.

Note: auth and the lifecycle modules are not imported at package level to
avoid circular imports with entrance.models. Import them directly:
from entrance.core.auth.auth import ... or from entrance.core.session_lifecycle import ...
"""
from .config import settings

__all__ = ["settings"]
