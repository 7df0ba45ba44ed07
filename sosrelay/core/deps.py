"""FastAPI dependencies."""

from __future__ import annotations

from fastapi.requests import HTTPConnection

from sosrelay.services.pipeline import Pipeline


def get_pipeline(connection: HTTPConnection) -> Pipeline:
    """The pipeline built at startup; tests override this dependency.

    Takes an HTTPConnection so HTTP and WebSocket routes can both depend on it.
    """
    return connection.app.state.pipeline
