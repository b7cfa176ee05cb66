"""Exception taxonomy for the orchestrator core."""

from __future__ import annotations


class OrchestratorError(Exception):
    """Base class for orchestrator failures."""


class ConfigurationError(OrchestratorError):
    """Required configuration is missing or invalid. Fatal at process start."""


class ProviderError(OrchestratorError):
    """The LLM provider call failed or streamed malformed content."""


class ToolError(OrchestratorError):
    """A tool could not complete. Reported back to the model, never fatal."""


class WorkspaceError(ToolError):
    """A path or project id does not resolve inside the workspace."""


class TaskDecodeError(OrchestratorError):
    """A queue payload could not be decoded into a Task."""
