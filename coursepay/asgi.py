"""
ASGI entrypoint: expose `app` pour les process managers (uvicorn, gunicorn + UvicornWorker).
"""
from coursepay.app_setup.factory import create_app

app = create_app()
