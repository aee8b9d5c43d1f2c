"""controlspine command-line interface."""

from controlspine.cli.app import app

__all__ = ["app"]
