# backend/wsgi.py
from etrans import create_app

app = create_app()
