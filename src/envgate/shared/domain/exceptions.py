"""
Domain exceptions for envgate.

Configuration problems are raised before anything is scheduled.
Tool and infrastructure failures are recorded on tasks instead of raised.
All application errors inherit from EnvgateError.
"""


class EnvgateError(Exception):
    """Base class for all envgate exceptions."""

    def __init__(self, message: str, context: dict = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationError(EnvgateError):
    """Raised when pipeline configuration is invalid, missing or corrupt."""

    pass


class ClassificationError(ConfigurationError):
    """Raised when a trigger/action combination maps to no stage list."""

    pass


class ArtifactError(EnvgateError):
    """Raised when an artifact cannot be written, read or located."""

    pass
