# backend/wsgi.py
from lotledger import create_app

app = create_app()
