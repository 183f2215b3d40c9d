"""Custom exceptions for gradle-dependency-runtime."""

from __future__ import annotations


class GradleRuntimeError(Exception):
    """Base exception for all pipeline errors.

    ``descriptor`` names the build descriptor being processed when the error
    was raised (``group:artifact``, a URL or a resource path). ``suppressed``
    collects secondary failures, e.g. a workspace that could not be removed
    while this error was already propagating.
    """

    def __init__(self, message: str, *, descriptor: str | None = None) -> None:
        self.descriptor = descriptor
        self.suppressed: list[BaseException] = []
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.descriptor and self.descriptor not in message:
            return f"{message} [descriptor: {self.descriptor}]"
        return message


class WorkspaceError(GradleRuntimeError):
    """Raised when the isolated workspace cannot be created, written or deleted."""


class EvaluationError(GradleRuntimeError):
    """Raised when the engine fails to evaluate a descriptor or the model is unusable."""


class ResolutionError(GradleRuntimeError):
    """Raised when declared artifacts cannot be fetched from their repositories."""


class DescriptorError(GradleRuntimeError):
    """Raised when a descriptor source cannot be read."""


class DescriptorNotFoundError(DescriptorError):
    """Raised when a descriptor does not exist at the requested location."""
