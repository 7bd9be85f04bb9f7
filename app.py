import logging
import math
from datetime import datetime, timezone
from flask import Flask, Blueprint, jsonify, request, current_app, send_from_directory
from flask_login import LoginManager, login_required

from config import Config
from traffic_tracker import TrafficTracker, PayloadError
from user import StatsUser
from view_store import ViewStore

DEFAULT_DAYS = 30
MAX_DAYS = 365


def resolve_days(value):
    """Window for /api/stats: 30 when missing or not a number, else clamped to 1..365."""
    try:
        days = float(value)
    except (TypeError, ValueError):
        return DEFAULT_DAYS
    if math.isnan(days):
        return DEFAULT_DAYS
    return int(min(MAX_DAYS, max(1, days)))


def create_api(store, tracker):
    api = Blueprint('api', __name__, url_prefix='/api')

    @api.route('/track', methods=['POST'])
    def track():
        # beacons may arrive without a JSON content type
        payload = request.get_json(force=True, silent=True)

        try:
            tracker.track(payload, request.headers, request.remote_addr)
        except PayloadError as e:
            return jsonify({'error': str(e)}), 400
        except Exception:
            current_app.logger.exception('Track error')
            return jsonify({'error': 'Internal error'}), 500

        return '', 204

    @api.route('/stats')
    @login_required
    def stats():
        days = resolve_days(request.args.get('days'))

        try:
            snapshot = store.aggregate_stats(days)
        except Exception:
            current_app.logger.exception('Stats error')
            return jsonify({'error': 'Internal error'}), 500

        return jsonify(snapshot.to_dict())

    return api


def create_app(config_object=Config, overrides=None, store=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    if overrides:
        app.config.update(overrides)
    app.logger.setLevel(logging.INFO)

    # One store per process, handed to the routes explicitly
    store = store or ViewStore()
    store.init_app(app)
    tracker = TrafficTracker(store)

    login_manager = LoginManager()
    login_manager.init_app(app)

    @login_manager.request_loader
    def load_user_from_request(req):
        return StatsUser.from_authorization(
            req.headers.get('Authorization'),
            app.config.get('STATS_PASSWORD')
        )

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    app.register_blueprint(create_api(store, tracker))

    @app.errorhandler(413)
    def payload_too_large(e):
        return jsonify({'error': 'Payload too large'}), 413

    @app.route('/tracker.js')
    def tracker_js():
        return send_from_directory(app.static_folder, 'tracker.js',
                                   mimetype='application/javascript')

    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'timestamp': datetime.now(timezone.utc).isoformat()}

    return app


if __name__ == '__main__':
    app = create_app()
    app.extensions['view_store'].open()
    app.logger.info(f"Analytics server running on http://localhost:{app.config['PORT']}")
    app.run(host='0.0.0.0', port=app.config['PORT'])
