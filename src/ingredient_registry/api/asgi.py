"""ASGI entrypoint for the ingredient registry API."""

from ingredient_registry.api.app import create_app
from ingredient_registry.containers import build_container

app = create_app(build_container())
