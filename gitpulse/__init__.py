"""GitPulse: GitHub organization activity aggregation service."""

__version__ = "0.1.0"
