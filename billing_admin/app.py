import os

import click
from flask import Flask, g, redirect, render_template, request, session, url_for

from billing_admin.config.settings import Config
from billing_admin.adapters.sqlite.core import close_connection


def create_app(test_config=None):
    """
    Build the billing admin Flask application.
    `test_config` is a mapping applied on top of Config.
    """
    app = Flask(__name__)

    # --------- Configuration ---------
    app.config.from_object(Config)
    if test_config is not None:
        app.config.from_mapping(test_config)
    else:
        print(f"[startup] Using database: {app.config['DATABASE_PATH']}")

    # Use FLASK_ENV or APP_ENV to choose 'production' mode; otherwise fall back to config.
    if not app.config.get('TESTING', False):
        env_name = os.environ.get('FLASK_ENV') or os.environ.get('APP_ENV') or app.config.get('ENV', 'development')
        if str(env_name).lower() == 'production':
            app.config['ENV'] = 'production'
            app.config['DEBUG'] = False
            app.jinja_env.auto_reload = False
        else:
            app.config['ENV'] = 'development'
            app.config['DEBUG'] = bool(app.config.get('DEBUG', False))
            app.jinja_env.auto_reload = bool(app.config.get('DEBUG', False))

    # --------- Database teardown ---------
    app.teardown_appcontext(close_connection)

    # --------- CLI ---------
    from billing_admin.adapters.sqlite.core import init_db_command
    from billing_admin.services.auth_service import AuthService

    @app.cli.command("init-db")
    def init_db():
        init_db_command()

    @app.cli.command("create-user")
    @click.argument("username")
    @click.argument("password")
    @click.argument("role", default="cashier")
    def create_user(username, password, role):
        service = AuthService()
        if service.register_user(username, password, role):
            print(f"User {username} created successfully.")
        else:
            print(f"User {username} already exists or error occurred.")

    # --------- Logged-in user ---------
    from billing_admin.adapters.sqlite.auth_repo import AuthRepository

    @app.before_request
    def load_logged_in_user():
        user_id = session.get("user_id")
        if user_id is None:
            g.user = None
        else:
            g.user = AuthRepository().get_by_id(user_id)

    # --------- Blueprints ---------
    from billing_admin.api.auth import bp as auth_bp
    app.register_blueprint(auth_bp)

    from billing_admin.api.billing import bp as billing_bp
    app.register_blueprint(billing_bp)

    from billing_admin.api.doctor_payments import bp as doctor_payments_bp
    app.register_blueprint(doctor_payments_bp)

    from billing_admin.api.expenses import bp as expenses_bp
    app.register_blueprint(expenses_bp)

    from billing_admin.api.reports import bp as reports_bp
    app.register_blueprint(reports_bp)

    from billing_admin.api.hmo_providers import bp as hmo_providers_bp
    app.register_blueprint(hmo_providers_bp)

    from billing_admin.api.admin import bp as admin_bp
    app.register_blueprint(admin_bp)

    @app.route("/")
    def index():
        if g.user is None:
            return redirect(url_for("auth.login"))
        return redirect(url_for("billing.index"))

    # --------- Template filters ---------
    from billing_admin.common.badges import badge, humanize
    from billing_admin.common.utils import format_currency, format_date, format_datetime

    @app.template_filter("currency")
    def currency_filter(value):
        return format_currency(value, app.config.get("CURRENCY_SYMBOL", "₱"))

    @app.template_filter("date")
    def date_filter(value):
        return format_date(value)

    @app.template_filter("datetime")
    def datetime_filter(value):
        return format_datetime(value)

    @app.template_filter("humanize")
    def humanize_filter(value):
        return humanize(value)

    app.jinja_env.globals["badge"] = badge

    @app.template_global()
    def url_with(**updates):
        """Current URL with some query args replaced (pagination, sorting)."""
        args = request.args.to_dict()
        args.update(updates)
        return url_for(request.endpoint, **{**(request.view_args or {}), **args})

    # --------- Error pages ---------
    @app.errorhandler(403)
    def forbidden(error):
        return render_template("errors/error.html", code=403,
                               message="You do not have permission to view this page."), 403

    @app.errorhandler(404)
    def not_found(error):
        return render_template("errors/error.html", code=404,
                               message="The record you are looking for was not found."), 404

    return app


# Expose a WSGI application callable for production servers (Gunicorn, uWSGI, etc.)
def get_wsgi_app():
    return create_app()

