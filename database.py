"""
MongoDB connection

`db` is None when DATABASE_URL / DATABASE_NAME are not set, so the app can
still boot and report its state at GET /test.
"""

from pymongo import MongoClient

import config
from errors import DatabaseUnavailable

client = None
db = None

if config.DATABASE_URL and config.DATABASE_NAME:
    client = MongoClient(config.DATABASE_URL)
    db = client[config.DATABASE_NAME]


def get_db():
    if db is None:
        raise DatabaseUnavailable()
    return db
