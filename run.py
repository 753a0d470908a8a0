#!/usr/bin/env python
import os

from reagent_inventory import create_app, db
from reagent_inventory.extensions import socketio
from reagent_inventory.models import User, Category

app = create_app()


def init_database():
    """Create tables and the starter catalog on a fresh database."""
    with app.app_context():
        db.create_all()
        Category.get_predefined_categories()
        print('Database initialized successfully')
        if User.query.count() == 0:
            print('No users yet: the first account to sign up becomes the administrator.')


if __name__ == '__main__':
    if os.environ.get('FLASK_ENV', 'development') == 'development':
        with app.app_context():
            needs_init = Category.query.count() == 0
        if needs_init:
            print("Database is empty, seeding categories...")
            init_database()
        socketio.run(app, debug=True, allow_unsafe_werkzeug=True)
    else:
        # Production mode - let gunicorn handle the serving
        socketio.run(app, debug=app.config['DEBUG'])
