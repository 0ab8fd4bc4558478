"""
Flask application configuration classes.
Provides configuration for development, production, and testing environments.
"""

import os


class Config:
    """Base configuration class with common settings."""

    # Secret key for session signing
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or 'instance/rental.db'
    DATABASE_TIMEOUT = float(os.environ.get('DATABASE_TIMEOUT', 10))

    # Identity is resolved from this header (set by the API gateway)
    USER_ID_HEADER = os.environ.get('USER_ID_HEADER', 'X-User-Id')

    # Reservation engine
    AUTO_APPROVAL_THRESHOLD = 80
    REJECTION_WINDOW_DAYS = 1
    CANCELLATION_WINDOW_DAYS = 3
    MAX_RECURRING_RANGE_DAYS = 366

    DEFAULT_HOST_POLICY = {
        'auto_approval_enabled': False,
        'max_auto_approve_amount': 7750000.00,
        'min_advance_hours': 24,
        'require_verification': True,
        'min_renter_score': 70,
    }

    DEFAULT_RENTER_TRUST = {
        'verification_score': 0,
        'booking_history_score': 50,
        'cancellation_rate': 0.0,
        'dispute_count': 0,
        'total_bookings': 0,
        'completed_bookings': 0,
    }

    # Optional zero-argument callable returning an aware UTC datetime
    CLOCK = None

    # Application settings
    APP_NAME = 'RentalHub'
    APP_VERSION = '1.0.0'


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    TESTING = False

    SECRET_KEY = os.environ.get('SECRET_KEY') or Config.SECRET_KEY
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or Config.DATABASE_PATH

    @classmethod
    def validate(cls) -> None:
        """Validate that required production environment variables are set."""
        secret_key = os.environ.get('SECRET_KEY')
        if not secret_key:
            raise ValueError("SECRET_KEY environment variable must be set in production")
        if len(secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters in production")
        if not os.environ.get('DATABASE_PATH'):
            raise ValueError("DATABASE_PATH environment variable must be set in production")


class TestConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    DEBUG = True
    DATABASE_PATH = os.environ.get('DATABASE_PATH', ':memory:')
    DATABASE_TIMEOUT = 30
    SECRET_KEY = 'test-secret-key'


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'test': TestConfig,
    'default': DevelopmentConfig
}
