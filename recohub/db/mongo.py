# recohub/db/mongo.py
from typing import Optional
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from recohub.core.config import Settings, get_settings
import certifi

logger = logging.getLogger(__name__)

# one client per process, opened by connect() and closed by disconnect()
_client: Optional[AsyncIOMotorClient] = None
_db: Optional[AsyncIOMotorDatabase] = None


def get_db() -> AsyncIOMotorDatabase:
    assert _db is not None, "Mongo DB not initialized"
    return _db


def _open_client(settings: Settings) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(
        settings.MONGO_URI,
        tlsCAFile=certifi.where(),
        uuidRepresentation="standard",
        serverSelectionTimeoutMS=6000,
        connectTimeoutMS=6000,
    )


async def connect(settings: Optional[Settings] = None) -> Optional[AsyncIOMotorDatabase]:
    """
    Open the catalog database and return it (None when no MONGO_URI is set).

    Startup never blocks on Mongo being up: if the ping fails the client is
    rebuilt without pinging and Motor connects lazily on the first catalog
    query. Only a client that cannot even be constructed leaves us unconnected.
    """
    global _client, _db
    settings = settings or get_settings()
    await disconnect()

    if not settings.MONGO_URI:
        logger.warning("No MONGO_URI configured, skipping Mongo connection")
        return None

    try:
        _client = _open_client(settings)
        _db = _client[settings.MONGO_DB]
        await _client.admin.command("ping")
        logger.info("Mongo connected (ping ok) db=%s", settings.MONGO_DB)
    except Exception as e:
        logger.warning("Mongo ping at startup failed db=%s error=%s", settings.MONGO_DB, e)
        if _client is not None:
            _client.close()
        try:
            _client = _open_client(settings)
            _db = _client[settings.MONGO_DB]
            logger.warning("Mongo will connect lazily on first catalog query db=%s", settings.MONGO_DB)
        except Exception as e2:
            _client, _db = None, None
            logger.error("Mongo client init failed error=%s", e2)
    return _db


async def disconnect() -> None:
    global _client, _db
    if _client is not None:
        _client.close()
        logger.info("Mongo disconnected")
    _client, _db = None, None
