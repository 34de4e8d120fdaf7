from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Global extension instances

db = SQLAlchemy()
migrate = Migrate()
