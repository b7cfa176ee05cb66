"""Configuration loading."""

from agentic_orchestrator.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
