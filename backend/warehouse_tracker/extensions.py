# Overview: Flask extension instances for database, migrations, and change notifications.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .notifications import NotificationHub

db = SQLAlchemy()
migrate = Migrate()
notifier = NotificationHub()
