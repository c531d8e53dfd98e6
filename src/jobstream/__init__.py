"""jobstream: OpenAI-compatible streaming gateway for job-based generation.

The package reconciles fire-and-poll media jobs, the vendor agent event
stream and tool calls spawned mid-stream into one chat completion stream.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
