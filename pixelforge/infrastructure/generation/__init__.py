"""
Generation Infrastructure Module

Exports:
    - HttpGenerationBackend: httpx adapter (implements GenerationBackendProtocol)
"""

from .http_backend import HttpGenerationBackend

__all__ = ["HttpGenerationBackend"]
