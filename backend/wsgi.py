# Overview: WSGI entry point (gunicorn wsgi:app, or FLASK_APP=wsgi.py).

from stockledger import create_app

app = create_app()
