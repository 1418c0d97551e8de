# backend/wsgi.py
from salon_ledger import create_app

app = create_app()
