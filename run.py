"""
Development server entry point.

Usage:
    $ python run.py
"""
import logging
import os

from car_rental import create_app

app = create_app()


def configure_logging(level=None):
    logging.basicConfig(level=level or app.config.get("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")


if __name__ == "__main__":
    configure_logging()
    app.run(debug=os.environ.get("FLASK_DEBUG") == "1")
