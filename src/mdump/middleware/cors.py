"""CORS setup for browser clients of the search API."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware


def configure_cors(app: FastAPI, allowed_origins: list[str]) -> None:
    """Let the notes web client call search, suggest and the event stream.

    A "*" entry opens the API to any origin; credentials are then
    disabled, since browsers refuse them alongside a wildcard.

    Args:
        app: FastAPI application instance.
        allowed_origins: Origins configured for the web client.
    """
    wildcard = "*" in allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else allowed_origins,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "Last-Event-ID"],
    )
