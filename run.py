#!/usr/bin/env python3
"""Application entry point

    python run.py              development server
    python run.py init-db      create the tables
    python run.py create-admin create the first administrator
"""
import os
import sys
from getpass import getpass

def _app():
    from pmcmicro import create_app
    return create_app(os.getenv('FLASK_ENV') or 'development')

def init_database():
    from pmcmicro import db
    app = _app()
    with app.app_context():
        db.create_all()
    print("Tables created in {}".format(app.config['SQLALCHEMY_DATABASE_URI']))

def create_admin_user():
    """Create the administrator named by ADMIN_USERNAME"""
    from pmcmicro import db
    from pmcmicro.models import User

    app = _app()
    with app.app_context():
        db.create_all()

        username = app.config['ADMIN_USERNAME']
        if User.query.filter_by(username=username).first():
            print("User {} already exists, nothing to do".format(username))
            return

        # ADMIN_PASSWORD lets deployments run this unattended
        password = os.getenv('ADMIN_PASSWORD') or getpass('Password for {}: '.format(username))
        if len(password) < 8:
            sys.exit("Refusing to create {}: password shorter than 8 characters".format(username))

        admin = User(username=username, full_name='System Administrator', role='admin', is_active=True)
        admin.set_password(password)
        db.session.add(admin)
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            sys.exit("Could not create {}: {}".format(username, e))
        print("Administrator {} created".format(username))

COMMANDS = {
    'init-db': init_database,
    'create-admin': create_admin_user,
}

if __name__ == '__main__':
    if len(sys.argv) > 1:
        command = COMMANDS.get(sys.argv[1])
        if command is None:
            print("Unknown command: {}".format(sys.argv[1]))
            print("Available commands: {}".format(', '.join(COMMANDS)))
            sys.exit(1)
        command()
    else:
        app = _app()
        app.run(host=os.getenv('HOST', '127.0.0.1'), port=int(os.getenv('PORT', 5000)),
                debug=app.config.get('DEBUG', False))
