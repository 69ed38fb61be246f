from flask import Flask, jsonify

from campus_library.config import Config
from campus_library.errors import register_error_handlers
from campus_library.extensions import db, migrate, jwt


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # 1) db first; models must be imported before create_all / migrations
    db.init_app(app)
    from campus_library import models  # noqa: F401

    # 2) other extensions
    migrate.init_app(app, db)
    jwt.init_app(app)

    register_error_handlers(app)

    # 3) API blueprints
    from campus_library.controllers.book_controller import book_bp
    from campus_library.controllers.borrow_controller import borrow_bp
    app.register_blueprint(book_bp, url_prefix="/library")
    app.register_blueprint(borrow_bp, url_prefix="/library")

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    # Inventory audit (opt-in)
    from campus_library.tasks.scheduler import start_scheduler
    start_scheduler(app)

    return app
