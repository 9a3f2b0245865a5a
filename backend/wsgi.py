# backend/wsgi.py
from bizpilot import create_app

app = create_app()
