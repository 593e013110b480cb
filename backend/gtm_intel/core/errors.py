"""
Error taxonomy shared by the research orchestrator, the pipeline executor and
the HTTP layer.

Only PersistenceError is ever treated as non-fatal, and it is reported through
StepWriteResult values rather than raised by the step log.
"""
from __future__ import annotations


class GTMIntelError(Exception):
    """Base class for all domain errors."""


class UpstreamCallError(GTMIntelError):
    """An external generation/collaborator call failed at transport or auth level."""


class ParseError(GTMIntelError):
    """The external call succeeded but its response was not structured data."""

    def __init__(self, message: str, raw_text: str | None = None) -> None:
        super().__init__(message)
        self.raw_text = raw_text


class PersistenceError(GTMIntelError):
    """A write to the step log failed."""


class NotFoundError(GTMIntelError):
    """A status/results query referenced an unknown run id."""


class ConfigurationError(GTMIntelError):
    """Required external-service credentials are absent."""


class StateTransitionError(GTMIntelError):
    """A pipeline state update would break the state machine's guarantees."""
