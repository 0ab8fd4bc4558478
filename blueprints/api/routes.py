"""
API routes for service-level JSON endpoints.
"""

from flask import Blueprint, current_app, jsonify

from database import get_db

api_bp = Blueprint('api', __name__)


@api_bp.route('/health')
def health_check():
    """
    Health check endpoint (no authentication required).

    Returns:
        JSON with status, version and database reachability
    """
    try:
        get_db().execute('SELECT 1').fetchone()
        database = 'ok'
    except Exception as e:
        current_app.logger.error(f"Health check database probe failed: {e}", exc_info=True)
        database = 'unavailable'

    return jsonify({
        'status': 'ok' if database == 'ok' else 'degraded',
        'database': database,
        'version': current_app.config.get('APP_VERSION', '1.0.0'),
        'app': current_app.config.get('APP_NAME', 'RentalHub')
    }), 200 if database == 'ok' else 503
