# backend/wsgi.py
from smartmart import create_app

app = create_app()
