"""
pyworkbench CLI - command-line access to the tool registry and runtime.
"""

from pyworkbench.cli.main import main

__all__ = ["main"]
