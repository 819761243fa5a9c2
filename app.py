import logging
import logging.config

import click
from flask import Flask, request
from flask_cors import CORS
from flask_migrate import Migrate
from sqlalchemy.exc import IntegrityError

from config import Config
from models import db
from models.account import Account, Role, username_for
from models.staff import StaffProfile
from routes import health_bp, auth_bp, admin_bp, audit_bp
from security.password import hash_password
from security.password_policy import validate_password
from security.store import init_store, get_store
from utils.errors import register_error_handlers
from utils.request_meta import client_ip

access_logger = logging.getLogger("hms.access")


def configure_logging(level: str):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(levelname)s [%(name)s] %(message)s"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "default"},
        },
        "root": {"level": level.upper(), "handlers": ["console"]},
    })


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)

    register_error_handlers(app)

    CORS(
        app,
        origins=[app.config.get("CLIENT_URL", "http://localhost:3000")],
        supports_credentials=True,
        expose_headers=["Retry-After"],
    )

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Rate limit counters + token denylist
    init_store(app)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Cache-Control"] = "no-store"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.after_request
    def log_request(resp):
        access_logger.info(
            "%s %s %s %s", client_ip(), request.method, request.full_path.rstrip("?"), resp.status_code
        )
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("create-admin")
    @click.argument("email")
    @click.option("--employee-id", required=True)
    @click.option("--first-name", default="System")
    @click.option("--last-name", default="Administrator")
    @click.password_option()
    def create_admin(email, employee_id, first_name, last_name, password):
        """Create the first ADMIN account (bootstrap)."""
        email = email.strip().lower()
        if Account.query.filter_by(email=email).first():
            raise click.ClickException("Account already exists")

        valid, errors = validate_password(password)
        if not valid:
            raise click.ClickException("; ".join(errors))

        account = Account(
            email=email,
            username=username_for(email),
            password_hash=hash_password(password),
            role=Role.ADMIN,
        )
        try:
            db.session.add(account)
            db.session.flush()
            db.session.add(StaffProfile(
                account_id=account.id,
                employee_id=employee_id,
                first_name=first_name,
                last_name=last_name,
            ))
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise click.ClickException(f"Could not create admin: {exc.orig}") from exc
        click.echo(f"{email} created as admin")

    @app.cli.command("prune-auth-store")
    def prune_auth_store():
        """Delete expired rate limit windows and revocation entries."""
        removed = get_store().prune()
        click.echo(f"removed {removed} expired rows")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5000)
