import logging
import os

import click
from flask import Flask
from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy

from .client import local_session

# Shared by the models and the data API.
db = SQLAlchemy()

logger = logging.getLogger(__name__)


def _default_database_uri():
    """SQLite file in the per-user data folder (%APPDATA% on Windows, home elsewhere)."""
    app_data_path = os.environ.get('APPDATA')
    if app_data_path:
        data_folder = os.path.join(app_data_path, 'TGAgro')
    else:
        data_folder = os.path.join(os.path.expanduser("~"), '.TGAgro')

    os.makedirs(data_folder, exist_ok=True)
    return f"sqlite:///{os.path.join(data_folder, 'database.db')}"


def create_app(test_config=None):
    """Application factory function."""
    app = Flask(__name__, instance_relative_config=False)
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    app.config.from_mapping(
        SECRET_KEY='dev',
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        API_URL=None,
        API_TIMEOUT=15,
        LOG_LEVEL='INFO',
    )
    # TGAGRO_SQLALCHEMY_DATABASE_URI, TGAGRO_API_URL, ...
    app.config.from_prefixed_env('TGAGRO')
    if test_config is not None:
        app.config.from_mapping(test_config)
    if not app.config.get('SQLALCHEMY_DATABASE_URI'):
        app.config['SQLALCHEMY_DATABASE_URI'] = _default_database_uri()

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    db.init_app(app)

    with app.app_context():
        from . import formatting
        from .routes import api
        from .views import views

        app.register_blueprint(api, url_prefix='/api')
        app.register_blueprint(views)
        formatting.register_filters(app)

        if not app.config.get('API_URL'):
            # Pages reach the API of this same app without a network round trip.
            app.extensions['tgagro.http_session'] = local_session(app)

        db.create_all()

    _register_commands(app)
    logger.info("TG Agro started with database %s, API at %s", app.config['SQLALCHEMY_DATABASE_URI'],
                app.config.get('API_URL') or 'this process')
    return app


def _register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables on the configured database."""
        db.create_all()
        click.echo('Database initialized.')

    @app.cli.command('import-pesagens')
    @click.argument('csv_path', type=click.Path(exists=True, dir_okay=False))
    def import_pesagens_command(csv_path):
        """Bulk import weighings from a CSV spreadsheet."""
        from .seed import import_pesagens

        created, skipped = import_pesagens(csv_path)
        click.echo(f'{created} weighings imported, {skipped} rows skipped.')
