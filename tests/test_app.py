"""
Test application factory, configuration and CLI.
"""

import pytest
from app import create_app


class TestAppFactory:
    """Test Flask application factory."""

    def test_create_app_development(self):
        app = create_app('development')
        assert app.config['DEBUG'] is True
        assert app.config['TESTING'] is False

    def test_create_app_test(self):
        app = create_app('test')
        assert app.config['TESTING'] is True

    def test_app_has_blueprints(self):
        app = create_app('test')
        assert 'api' in app.blueprints
        assert 'rental' in app.blueprints

    def test_app_has_login_manager(self):
        app = create_app('test')
        assert hasattr(app, 'login_manager')

    def test_production_requires_secret(self, monkeypatch):
        monkeypatch.delenv('SECRET_KEY', raising=False)
        with pytest.raises(ValueError):
            create_app('production')


class TestAppConfiguration:
    """Engine settings carry their defaults."""

    def test_engine_defaults(self):
        app = create_app('test')
        assert app.config['AUTO_APPROVAL_THRESHOLD'] == 80
        assert app.config['REJECTION_WINDOW_DAYS'] == 1
        assert app.config['CANCELLATION_WINDOW_DAYS'] == 3
        assert app.config['DEFAULT_HOST_POLICY']['min_renter_score'] == 70
        assert app.config['DEFAULT_RENTER_TRUST']['booking_history_score'] == 50


class TestCli:
    """flask init-db and create-user."""

    def test_init_db(self, app):
        result = app.test_cli_runner().invoke(args=['init-db'])
        assert 'Database initialized successfully!' in result.output

    def test_create_user(self, app):
        from models.user import get_user_by_username

        runner = app.test_cli_runner()
        result = runner.invoke(args=['create-user', 'cli_host', 'host', '--full-name', 'CLI Host'])
        assert 'User created successfully!' in result.output

        with app.app_context():
            assert get_user_by_username('cli_host')['role'] == 'host'

        result = runner.invoke(args=['create-user', 'cli_host', 'host'])
        assert 'Username already exists' in result.output


class TestGunicornConfig:
    """Deployment settings come from the environment."""

    def load(self):
        import os
        import runpy

        path = os.path.join(os.path.dirname(os.path.dirname(__file__)), 'gunicorn.conf.py')
        return runpy.run_path(path)

    def test_defaults(self, monkeypatch):
        for name in ('RENTAL_BIND', 'RENTAL_WORKERS', 'RENTAL_LOG_DIR'):
            monkeypatch.delenv(name, raising=False)
        settings = self.load()
        assert settings['bind'] == '0.0.0.0:8000'
        assert settings['workers'] == 2
        assert settings['accesslog'].endswith('gunicorn-access.log')

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv('RENTAL_BIND', '127.0.0.1:9000')
        monkeypatch.setenv('RENTAL_WORKERS', '1')
        monkeypatch.setenv('RENTAL_LOG_DIR', '/var/log/rentalhub')
        settings = self.load()
        assert settings['bind'] == '127.0.0.1:9000'
        assert settings['workers'] == 1
        assert settings['errorlog'] == '/var/log/rentalhub/gunicorn-error.log'

    def test_request_timeout_exceeds_database_timeout(self):
        from config import ProductionConfig
        assert self.load()['timeout'] > ProductionConfig.DATABASE_TIMEOUT
