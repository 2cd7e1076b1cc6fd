import logging
import os

import click
from flask import Flask, current_app

from data_models import db
from mapping import VARIANTS, get_strategy
from scenarios import run_scenario
from statements import summarize


basedir = os.path.abspath(os.path.dirname(__file__))
db_path = os.path.join(basedir, 'data', 'library.sqlite')
DEFAULT_DATABASE_URI = 'sqlite:///' + db_path.replace('\\', '/')


def create_app(test_config=None):
    app = Flask(__name__)

    app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', DEFAULT_DATABASE_URI)
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret')
    app.config['MAPPING_STRATEGY'] = os.environ.get('MAPPING_STRATEGY', 'bidirectional')
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')
    if test_config:
        app.config.update(test_config)

    # Unknown strategy names fail here rather than on first use.
    get_strategy(app.config['MAPPING_STRATEGY'])

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if app.config['SQLALCHEMY_DATABASE_URI'] == DEFAULT_DATABASE_URI:
        os.makedirs(os.path.dirname(db_path), exist_ok=True)

    db.init_app(app)
    register_commands(app)
    return app


def register_commands(app):
    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo('Tabellen angelegt.')

    @app.cli.command('variants')
    def variants():
        """List the available mapping strategies."""
        for strategy in VARIANTS.values():
            click.echo(str(strategy))

    @app.cli.command('demo')
    @click.option('--variant', default=None,
                  help="Strategy name or 'all'; defaults to MAPPING_STRATEGY.")
    @click.option('--books', default=3, show_default=True, type=click.IntRange(min=1),
                  help='Number of books the demo author starts with.')
    def demo(variant, books):
        """Replay the association scenario and print each step's statements."""
        if variant == 'all':
            strategies = list(VARIANTS.values())
        else:
            try:
                strategies = [get_strategy(variant or current_app.config['MAPPING_STRATEGY'])]
            except KeyError as exc:
                raise click.BadParameter(exc.args[0], param_hint='--variant')

        db.create_all()
        for strategy in strategies:
            click.echo(f"== {strategy}")
            for step, statements in run_scenario(strategy, books=books):
                click.echo(f"-- {step}: {len(statements)} Statement(s){_format_counts(statements)}")
                for statement in statements:
                    click.echo(f"   {statement.describe()}")


def _format_counts(statements):
    counts = summarize(statements)
    if not counts:
        return ''
    return ' (' + ', '.join(f"{n} {kind} {table}" for (kind, table), n in counts.items()) + ')'
