"""HTTP surface for function-calling callers."""

from pyworkbench.api.server import app, create_app, run_server

__all__ = ["app", "create_app", "run_server"]
