"""
reset_data.py
-------------
Drop and recreate every table of the configured database (DATABASE_URL, or the
local SQLite file by default). Development use only.

Usage:
    $ python reset_data.py

Afterwards, repopulate demo data with:
    $ python seeds.py
"""

from car_rental import create_app
from car_rental.extensions import db


def main():
    app = create_app()
    with app.app_context():
        db.drop_all()
        db.create_all()
        print(f"Database reset: {app.config['SQLALCHEMY_DATABASE_URI']}")
        print("Tip: run `python seeds.py` to regenerate demo data.")


if __name__ == "__main__":
    main()
