"""
Run Flask app with Waitress WSGI server (production-grade, no reloader issues)
"""
import os
from waitress import serve
from main import app

if __name__ == '__main__':
    print("\n" + "="*70)
    print("Starting SOP Compliance Comparison with Waitress WSGI Server")
    print("="*70 + "\n")

    # Serve the app on all interfaces
    serve(app, host='0.0.0.0', port=int(os.getenv('PORT', '5000')), threads=4)
