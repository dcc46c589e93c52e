import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with common settings."""
    # CORS configuration
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")  # None logs to stdout only

    # Re-initialize lock: seconds to wait for the per-project lock manager mutex
    REINITIALIZE_LOCK_TIMEOUT = int(os.environ.get("REINITIALIZE_LOCK_TIMEOUT", "30"))

    # Assign talent by role when a workflow is initialized without an explicit choice
    AUTO_ASSIGN_TALENT = os.environ.get("AUTO_ASSIGN_TALENT", "false").lower() in ("1", "true", "yes")


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


class TestConfig(Config):
    """Configuration for the test suite (in-memory SQLite)."""
    ENV = "test"
    DEBUG = False
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_FILE = None


def get_config():
    """Get the appropriate configuration class based on environment variable.

    Environment is determined by FLASK_ENV or ENVIRONMENT variable:
    - 'local' or 'development' -> LocalConfig
    - 'sandbox' or 'staging' -> SandboxConfig
    - 'production' or 'prod' -> ProductionConfig
    - 'test' or 'testing' -> TestConfig

    Defaults to LocalConfig if not set.
    """
    env = (os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")).lower()

    if env in ["local", "development", "dev"]:
        return LocalConfig
    elif env in ["sandbox", "staging", "stage"]:
        return SandboxConfig
    elif env in ["production", "prod"]:
        return ProductionConfig
    elif env in ["test", "testing"]:
        return TestConfig
    else:
        # Default to local for safety
        return LocalConfig
