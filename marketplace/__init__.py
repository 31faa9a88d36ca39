"""Flask application factory."""
from flask import Flask, jsonify, request
from marketplace.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    
    # Initialize Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        
        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )
    
    # Initialize Redis cache and job queue
    from marketplace.services.cache_service import init_cache
    from marketplace.services.job_queue import init_job_queue
    init_cache(app)
    init_job_queue(app)
    
    # Setup Prometheus metrics instrumentation
    from marketplace.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)
    
    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)
    
    # Initialize database
    init_db(app)
    
    from marketplace.middleware import load_request_context

    @app.before_request
    def before_request_handler():
        """Load actor and seller scope for each request."""
        load_request_context()

    # Error Handlers
    from marketplace.exceptions import MarketplaceError

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"MarketplaceError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"MarketplaceError [{error.status_code}]: {error.message} ({request.path})")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'status': 'error', 'message': 'Method Not Allowed'}), 405

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    @app.route('/health')
    def health():
        return jsonify({'status': 'ok'})
    
    # Register blueprints
    from marketplace.blueprints.inventory import inventory_bp
    from marketplace.blueprints.catalog import catalog_bp
    from marketplace.blueprints.carts import carts_bp
    from marketplace.blueprints.orders import orders_bp
    from marketplace.blueprints.metrics import metrics_bp
    
    app.register_blueprint(inventory_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(carts_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(metrics_bp)
    
    # Register CLI commands
    from marketplace.cli_commands import init_cli_commands
    init_cli_commands(app)
    
    return app
