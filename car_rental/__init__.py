import os

from flask import Flask, jsonify, send_from_directory

from .config import Config
from .controllers.account import bp as account_bp
from .controllers.appointments import bp as appointments_bp
from .controllers.auth import bp as auth_bp
from .controllers.cars import bp as cars_bp
from .controllers.manager import bp as manager_bp
from .controllers.payments import bp as payments_bp
from .controllers.staff import bp as staff_bp
from .exceptions import CarRentalError
from .extensions import db
from .utils.filters import fmt_iso_local, fmt_money


def _register_error_handlers(app):
    @app.errorhandler(CarRentalError)
    def _domain_error(e):
        return jsonify(ok=False, message=e.message), e.status_code

    @app.errorhandler(404)
    def _not_found(e):
        return jsonify(ok=False, message="Not found"), 404


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    db.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(cars_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(account_bp)
    app.register_blueprint(staff_bp)
    app.register_blueprint(manager_bp)
    app.jinja_env.filters["fmt_iso_local"] = fmt_iso_local
    app.jinja_env.filters["fmt_money"] = fmt_money
    _register_error_handlers(app)

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_FOLDER"], filename)

    with app.app_context():
        from . import models  # noqa: F401  (register tables)
        db.create_all()
        os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    return app
