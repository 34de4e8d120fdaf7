import os

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """Base configuration with sensible defaults."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL"
    ) or "sqlite:///" + os.path.join(basedir, "mechanisms.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Solver settings, read through SolverConfig.from_mapping
    SOLVER_TOLERANCE = os.environ.get("SOLVER_TOLERANCE", "medium")
    SIMULATION_MAX_TICKS = int(os.environ.get("SIMULATION_MAX_TICKS", 10000))


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False
