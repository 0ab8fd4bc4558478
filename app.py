"""
RentalHub - Vehicle rental reservation engine
Flask application factory and initialization
"""

import os
import click
import logging
from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

# Load environment variables
load_dotenv()

# Import configuration
from config import config

# Import extensions
from extensions import login_manager

# Import database functions
from database import close_db, init_db


def create_app(config_name=None):
    """
    Application factory for Flask app.

    Args:
        config_name: Configuration name ('development', 'production', 'test')

    Returns:
        Flask application instance
    """
    # Determine config
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    # Create Flask app
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config[config_name])
    if config_name == 'production':
        config[config_name].validate()

    # Initialize extensions
    initialize_extensions(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register CLI commands
    register_cli_commands(app)

    # Register teardown handlers
    register_teardown_handlers(app)

    # Configure logging
    configure_logging(app)

    return app


def initialize_extensions(app):
    """Initialize Flask extensions."""
    # Initialize Flask-Login
    login_manager.init_app(app)


def register_blueprints(app):
    """Register Flask blueprints."""
    # Import blueprints
    from blueprints.api.routes import api_bp
    from blueprints.rental import rental_bp

    # Register blueprints
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(rental_bp, url_prefix='/api')


def _rollback():
    db = g.get('db')
    if db is not None and db.in_transaction:
        db.rollback()


def register_error_handlers(app):
    """Register JSON error handlers."""
    from models.errors import ReservationError
    from utils.api_response import api_engine_error, api_error

    @app.errorhandler(ReservationError)
    def reservation_error(error):
        """Engine failures keep their kind, tag and details."""
        _rollback()
        app.logger.info(f"{request.method} {request.path} -> {error.code}: {error.message}")
        return api_engine_error(error)

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Handle 404, 405 and other HTTP errors."""
        return api_error(error.description, error.code, code=error.name.lower().replace(' ', '_'))

    @app.errorhandler(Exception)
    def internal_error(error):
        """Handle unexpected errors."""
        # Rollback database on error
        _rollback()
        app.logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        return api_error('Internal server error', 500, code='internal_error')


def register_cli_commands(app):
    """Register Flask CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Initialize database with schema and seed data."""
        click.echo('Initializing database...')
        with app.app_context():
            init_db()
        click.echo('Database initialized successfully!')

    @app.cli.command('create-user')
    @click.argument('username')
    @click.argument('role', type=click.Choice(['renter', 'host', 'admin']))
    @click.option('--full-name', default=None, help='Display name')
    def create_user_command(username, role, full_name):
        """Mirror a user from the identity provider."""
        from models.user import create_user

        with app.app_context():
            try:
                user_id = create_user(username=username, role=role, full_name=full_name)
                click.echo(f'User created successfully! ID: {user_id}')
            except ValueError as e:
                click.echo(f'Error creating user: {str(e)}', err=True)


def register_teardown_handlers(app):
    """Register teardown handlers."""

    @app.teardown_appcontext
    def teardown_db(error):
        """Close database connection at end of request."""
        close_db(error)


def configure_logging(app):
    """Configure application logging."""
    if not app.debug and not app.testing:
        # Production logging
        if not os.path.exists('logs'):
            os.mkdir('logs')

        file_handler = logging.FileHandler('logs/rental.log')
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('models').addHandler(file_handler)
        logging.getLogger('models').setLevel(logging.INFO)

        app.logger.setLevel(logging.INFO)
        app.logger.info('RentalHub startup')
    else:
        # Development logging
        app.logger.setLevel(logging.DEBUG)


# Create application instance for development server
if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', debug=True)
