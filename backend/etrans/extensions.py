# Overview: Flask extension instances for database, migrations and rate limiting.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()

# Default and storage limits come from RATELIMIT_DEFAULT / RATELIMIT_STORAGE_URI
# in Config so tests can switch the limiter off per app.
limiter = Limiter(key_func=get_remote_address)
