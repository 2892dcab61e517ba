"""
WSGI callable for the SOP comparison service.
Point the process manager at ``wsgi:app``; run_waitress.py is the bundled alternative.
"""
from main import app
