# Overview: Shared Flask extension instances; bound to the app in create_app().

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Models import db from here; migrations/ is managed through migrate
db = SQLAlchemy()
migrate = Migrate()
