"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""
    
    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False
    
    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')
    
    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'marketplace')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'marketplace')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'marketplace')
        
        DATABASE_URL = (
            f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )
    
    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }
    
    # Inventory
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '5'))
    INVENTORY_PAGE_SIZE = int(os.getenv('INVENTORY_PAGE_SIZE', '200'))
    STOCK_MUTATION_MAX_RETRIES = int(os.getenv('STOCK_MUTATION_MAX_RETRIES', '3'))
    STOCK_MUTATION_RETRY_WAIT = float(os.getenv('STOCK_MUTATION_RETRY_WAIT', '0.05'))
    CATALOG_PAGE_SIZE = int(os.getenv('CATALOG_PAGE_SIZE', '20'))
    
    # Redis Cache Configuration
    # Shared cache layer for the public catalog listing
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '30'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'marketplace')
    
    # Background jobs (Redis list). Disabled -> jobs run inline.
    JOB_QUEUE_ENABLED = os.getenv('JOB_QUEUE_ENABLED', 'true').lower() == 'true'
    JOB_QUEUE_NAME = os.getenv('JOB_QUEUE_NAME', 'inventory-jobs')
    JOB_QUEUE_BLOCK_TIMEOUT = int(os.getenv('JOB_QUEUE_BLOCK_TIMEOUT', '5'))


class TestingConfig(Config):
    """Configuration used by the test suite (in-memory SQLite)."""
    
    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'connect_args': {'check_same_thread': False},
        'poolclass': StaticPool,
    }
    CACHE_ENABLED = False
    JOB_QUEUE_ENABLED = False
    STOCK_MUTATION_RETRY_WAIT = 0
