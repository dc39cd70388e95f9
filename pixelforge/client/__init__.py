"""
Client Orchestrator

Exports:
    - GenerationClient: submit + push/poll race + recovery by job id
    - GenerationOutcome
    - ApiRequestError
"""

from .orchestrator import ApiRequestError, GenerationClient, GenerationOutcome

__all__ = ["ApiRequestError", "GenerationClient", "GenerationOutcome"]
