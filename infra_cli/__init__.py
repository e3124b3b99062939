"""Operator CLI for Common Fate deployments.

Typer and Rich provide help and error rendering; command payloads stay
machine-friendly JSON.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
