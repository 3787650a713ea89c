# Overview: WSGI entry point (FLASK_APP=wsgi.py).

from efectivio import create_app

app = create_app()
