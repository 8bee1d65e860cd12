# backend/wsgi.py
from invenbill import create_app

app = create_app()
