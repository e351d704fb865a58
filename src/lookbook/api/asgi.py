"""ASGI entrypoint for the lookbook API."""

from lookbook.api.app import create_app
from lookbook.containers import build_container

app = create_app(build_container())
