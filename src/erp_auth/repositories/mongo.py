from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from erp_auth.configs.logging_config import get_logger
from erp_auth.configs.settings import Settings

log = get_logger(__name__)


def get_mongo_client(settings: Settings) -> AsyncIOMotorClient:
    # Never log the full URI, it may carry credentials.
    log.info("mongo.client.create db=%s", settings.mongo_db)
    return AsyncIOMotorClient(settings.mongo_uri, tz_aware=True)


def get_mongo_db(client: AsyncIOMotorClient, settings: Settings) -> AsyncIOMotorDatabase:
    log.info(
        "mongo.db.select db=%s users=%s companies=%s",
        settings.mongo_db,
        settings.users_collection,
        settings.companies_collection,
    )
    return client[settings.mongo_db]
