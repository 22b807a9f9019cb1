"""Application factory and initialization"""
import logging
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from sqlalchemy.exc import SQLAlchemyError
from config import config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()

def create_app(config_name='default'):
    """Create and configure the Flask application"""
    app = Flask(__name__)
    app.config.from_object(config[config_name])

    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Configure login manager
    login_manager.login_view = 'auth.login'
    login_manager.login_message = 'Please log in to access this page.'
    login_manager.login_message_category = 'info'

    # Register blueprints
    from pmcmicro.auth import auth_bp
    from pmcmicro.main import main_bp
    from pmcmicro.admin import admin_bp
    from pmcmicro.staff import staff_bp
    from pmcmicro.clients import clients_bp
    from pmcmicro.loans import loans_bp
    from pmcmicro.savings import savings_bp
    from pmcmicro.accounts import accounts_bp
    from pmcmicro.reports import reports_bp

    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(main_bp, url_prefix='/')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(staff_bp, url_prefix='/staff')
    app.register_blueprint(clients_bp, url_prefix='/clients')
    app.register_blueprint(loans_bp, url_prefix='/loans')
    app.register_blueprint(savings_bp, url_prefix='/savings')
    app.register_blueprint(accounts_bp, url_prefix='/accounts')
    app.register_blueprint(reports_bp, url_prefix='/reports')

    # Context processor for global variables
    @app.context_processor
    def inject_globals():
        from pmcmicro.models import Branch
        from pmcmicro.utils.helpers import get_active_branch
        from flask_login import current_user
        from datetime import datetime

        branches = []
        if current_user.is_authenticated and current_user.sees_all_branches:
            branches = Branch.query.filter_by(is_active=True).order_by(Branch.branch_name).all()

        active_branch = get_active_branch()
        return dict(
            app_name=app.config['DEFAULT_APP_NAME'],
            currency=app.config['DEFAULT_CURRENCY'],
            now=datetime.now,
            today=datetime.now().date(),
            active_branch=active_branch,
            branch_arg=active_branch.id if active_branch and current_user.sees_all_branches else None,
            branches=branches
        )

    @app.template_filter('money')
    def money_filter(value):
        from pmcmicro.finance.calculator import money, to_decimal
        return '{:,.2f}'.format(money(to_decimal(value)))

    # Failed writes outside the payment form end up here
    @app.errorhandler(SQLAlchemyError)
    def database_error(error):
        from flask import flash, redirect, request, url_for
        db.session.rollback()
        app.logger.exception('Database error on %s %s', request.method, request.path)
        flash('The change could not be saved. Please try again.', 'danger')
        return redirect(request.referrer or url_for('main.dashboard'))

    app.logger.debug('Application created with %s configuration', config_name)
    return app
