import os

from dotenv import load_dotenv

load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """
    Settings read from the environment (or a .env file).
    """
    SECRET_KEY = os.getenv("LIBRARY_SECRET_KEY", "dev-secret-key")      # For flash messages (dev only).
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "LIBRARY_DATABASE_URL",
        f"sqlite:///{os.path.join(basedir, 'data/library.sqlite')}",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LIBRARY_LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "DEBUG"
