"""
Client for the external AI backend (experience summaries, self-introduction
feedback, career chat, profile search and AI clone generation).
"""

from .client import AIBackendClient
from .errors import UpstreamError, UpstreamUnavailableError, UpstreamContractViolation

__all__ = [
    "AIBackendClient",
    "UpstreamError",
    "UpstreamUnavailableError",
    "UpstreamContractViolation",
]
