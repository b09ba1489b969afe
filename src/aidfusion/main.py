"""Application entry point for the AidFusion auth server."""

from aidfusion.app import App
from aidfusion.config import Config
from aidfusion.core.db import MongoPool
from aidfusion.logging import setup_logging
from aidfusion.web.runner import run_server


def main() -> None:
    # Fails before anything starts if the database URL or signing secret is missing
    config = Config()
    setup_logging(config.debug)
    pool = MongoPool(config)
    app = App(config, pool)
    run_server(app, config)


if __name__ == "__main__":
    main()
