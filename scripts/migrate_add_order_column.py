import os, sys
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from app import create_app
from data_models import db
from sqlalchemy import inspect, text


ORDERED_TABLES = ('books', 'author_books')


def main(app=None):
    app = app or create_app()
    with app.app_context():
        insp = inspect(db.engine)
        for table in ORDERED_TABLES:
            if not insp.has_table(table):
                print(f'Table {table} does not exist yet, skipped')
                continue
            cols = [c['name'] for c in insp.get_columns(table)]
            if 'books_order' not in cols:
                with db.engine.begin() as conn:
                    conn.execute(text(f'ALTER TABLE {table} ADD COLUMN books_order INTEGER'))
                print(f'Added books_order column to {table}')
            else:
                print(f'books_order column already exists in {table}')


if __name__ == '__main__':
    main()
