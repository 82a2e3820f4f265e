#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Run the Personal Budget web page
Usage: python run_web.py
"""

import logging

from personal_budget import config
from personal_budget.backend.manager import BudgetManager
from personal_budget.web.app import create_app, socketio

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=logging.INFO
)
logger = logging.getLogger(__name__)


def build_storage():
    if config.STORAGE_BACKEND == 'mongo':
        from personal_budget.backend.mongo_storage import MongoStorage, database
        return MongoStorage(database(config.MONGO_URL, config.MONGO_DB_NAME, timeout=config.SAVE_TIMEOUT))
    from personal_budget.backend.storage import Storage
    return Storage(config.DB_PATH, timeout=config.SAVE_TIMEOUT)


def main():
    logger.info("Using %s storage", config.STORAGE_BACKEND)
    manager = BudgetManager(build_storage())
    manager.initialize()
    app = create_app(manager)
    try:
        socketio.run(app, host=config.HOST, port=config.PORT)
    finally:
        manager.close()


if __name__ == "__main__":
    main()
