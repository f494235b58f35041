"""ASGI entrypoint for the face verification server."""

from face_verify.api.app import create_app
from face_verify.containers import build_container

app = create_app(build_container())
