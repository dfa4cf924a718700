"""Agent that reports host information and system state to a Nezha dashboard over gRPC."""

__version__ = "0.0.2"

__all__ = ["__version__"]