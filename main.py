from flask import Flask, jsonify
import logging
import os
from dotenv import load_dotenv

print("\n=== DEBUG APP INITIALIZATION ===")

# Load environment variables BEFORE importing services so module-level
# instances (rate limiter, LLM settings) pick up .env values
load_dotenv()
print(f"DEBUG: .env file loaded")

logging.basicConfig(
    level=os.getenv('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)

from sop_compare.routes.comparison_routes import comparison_bp
from sop_compare.routes.chat_routes import chat_bp
from sop_compare.routes.document_routes import document_bp
from sop_compare.services.rate_limiter import rate_limiter

app = Flask(__name__)
app.secret_key = os.getenv('SECRET_KEY', 'dev-secret-key')
print(f"DEBUG: Flask app created")
print(f"DEBUG: SECRET_KEY set: {bool(app.secret_key)}")

# Configure Flask for running behind a reverse proxy
from werkzeug.middleware.proxy_fix import ProxyFix
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)


print(f"DEBUG: OPENAI_MODEL: {os.getenv('OPENAI_MODEL', 'gpt-4o-mini')}")
print(f"DEBUG: OPENAI_API_KEY: {'SET' if os.getenv('OPENAI_API_KEY') else 'None'}")
print(f"DEBUG: CONTENT_ROOT: {os.getenv('CONTENT_ROOT') or os.path.join(os.getcwd(), 'public')}")
print(f"DEBUG: Rate limits: {rate_limiter.requests_per_minute}/min, {rate_limiter.requests_per_day}/day")

app.register_blueprint(comparison_bp)
app.register_blueprint(chat_bp)
app.register_blueprint(document_bp)


@app.route('/health')
def health():
    """Liveness check with current API quota usage"""
    return jsonify({'status': 'ok', 'rate_limit': rate_limiter.stats()})


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', '5000')), debug=False)
