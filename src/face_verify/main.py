"""Command line entrypoint."""

import uvicorn

from face_verify.config import Settings


def main() -> None:
    """Run the server with uvicorn."""
    settings = Settings()
    uvicorn.run("face_verify.api.asgi:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
