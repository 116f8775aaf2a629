"""
Error types shared by the workbench core.

Only caller mistakes are raised to the request layer. Reasoning-service
problems are caught inside the composer and turned into warnings.
"""


class ValidationError(ValueError):
    """A required input was missing or malformed."""


class ReasoningServiceError(RuntimeError):
    """The external reasoning service failed or returned nothing usable."""


class WorkflowResponseError(ValueError):
    """A reasoning-service reply could not be turned into a workflow."""
