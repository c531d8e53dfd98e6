"""Collaborator seams towards the remote generation service."""

from .upstream_base import JobBackend, JobSpec, JobStatusReport
from .upstream_client import HttpJobBackend
from .upstream_context import Region, RequestContext
from .upstream_retry import call_with_retries

__all__ = [
    "HttpJobBackend",
    "JobBackend",
    "JobSpec",
    "JobStatusReport",
    "Region",
    "RequestContext",
    "call_with_retries",
]
