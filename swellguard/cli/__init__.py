"""
Command Line Interface for SwellGuard.

This module provides the main entry point for the ``swellguard`` console
script. It imports and registers all command groups from the commands package.
"""
from .commands import app

__all__ = ['app']

# This allows the module to be run directly with `python -m swellguard.cli`
if __name__ == "__main__":
    app()
