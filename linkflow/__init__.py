from pathlib import Path

import click
from flask import Flask

from linkflow.api import api_bp
from linkflow.config import Config
from linkflow.extensions import db, login_manager, migrate
from linkflow.models import User
from linkflow.services.bookmark_parser import normalize_browser, parse_bookmark_file
from linkflow.services.errors import BookmarkImportError
from linkflow.services.import_jobs import run_import_job
from linkflow.services.notifications import init_notifier


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    init_notifier(app)

    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized LinkFlow database.")

    @app.cli.command("import-bookmarks")
    @click.argument("username")
    @click.argument("path", type=click.Path(exists=True, dir_okay=False))
    @click.option("--browser", default="chrome", show_default=True)
    def import_bookmarks_command(username, path, browser):
        user = User.query.filter_by(username=username).first()
        if not user:
            raise click.ClickException(f"unknown user: {username}")

        browser = normalize_browser(browser)
        html = Path(path).read_text(encoding="utf-8", errors="ignore")
        nodes = parse_bookmark_file(html, browser)
        if not nodes:
            raise click.ClickException("No bookmarks found in file.")
        try:
            job, result = run_import_job(user, nodes, source="cli", browser=browser)
        except BookmarkImportError as exc:
            raise click.ClickException(str(exc)) from exc
        print(
            f"Import {job.id}: {result.created_count} created, "
            f"{result.skipped_count} skipped, "
            f"{result.collections_created} collections created."
        )

    with app.app_context():
        db.create_all()

    return app
