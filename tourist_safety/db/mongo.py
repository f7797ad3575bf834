from functools import lru_cache

from pymongo import MongoClient

from ..config import MONGO_URI, DB_NAME


@lru_cache(maxsize=1)
def get_client():
    # tz_aware so stored timestamps compare against datetime.now(timezone.utc)
    return MongoClient(MONGO_URI, tz_aware=True)


def get_db():
    return get_client()[DB_NAME]
