"""WSGI entry point for the labs router."""

import os

from router_app import create_app

app = create_app(os.getenv("FLASK_ENV", "production"))
