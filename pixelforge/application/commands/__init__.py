"""
Commands (CQRS write side)

Exports:
    - SubmitGenerationCommand
"""

from .submit_generation import SubmitGenerationCommand

__all__ = ["SubmitGenerationCommand"]
