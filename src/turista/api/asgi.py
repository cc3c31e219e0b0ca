"""ASGI entrypoint for the Turista API."""

from turista.api.app import create_app
from turista.containers import build_container

app = create_app(build_container())
