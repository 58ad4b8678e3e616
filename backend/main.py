"""ASGI entrypoint: ``hypercorn backend.main:app`` or ``python -m backend.main``."""
from .app import create_app
from .common.config import settings

app = create_app()

if __name__ == "__main__":
    app.run(host=settings.APP_HOST, port=settings.APP_PORT, use_reloader=False)
