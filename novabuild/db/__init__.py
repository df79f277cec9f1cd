# novabuild/db/__init__.py
"""
MongoDB connection for the durable project store.

connect_db() pings the server before registering ProjectRecord with Beanie.
A failed connection is remembered rather than raised so /api/health can
report it and the app can fall back to the in-memory store.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from novabuild.core.config import settings
from novabuild.core.logging import log


@dataclass
class DatabaseStatus:
    connected: bool = False
    database: Optional[str] = None
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"connected": self.connected, "database": self.database, "error": self.error}


_client = None
_status = DatabaseStatus()


async def connect_db(url: Optional[str] = None, database_name: Optional[str] = None) -> bool:
    """Connect Motor and initialise Beanie. Returns False if MongoDB is unreachable."""
    global _client, _status
    from beanie import init_beanie
    from motor.motor_asyncio import AsyncIOMotorClient

    from novabuild.models.record import ProjectRecord

    url = url or settings.store.mongodb_url
    database_name = database_name or settings.store.database_name

    client = AsyncIOMotorClient(url, serverSelectionTimeoutMS=5000)
    try:
        await client.admin.command("ping")
        await init_beanie(database=client[database_name], document_models=[ProjectRecord])
    except Exception as e:
        client.close()
        _status = DatabaseStatus(connected=False, database=database_name, error=str(e))
        print(f"⚠️ [DB] MongoDB not available: {e}")
        print("   ℹ️ Set PROJECT_STORE=memory to run without MongoDB")
        return False

    _client = client
    _status = DatabaseStatus(connected=True, database=database_name)
    print(f"✅ [DB] Connected to MongoDB ({database_name})")
    return True


async def disconnect_db() -> None:
    global _client, _status
    if _client is not None:
        _client.close()
        log("STORE", "Disconnected from MongoDB")
    _client = None
    _status = DatabaseStatus(database=_status.database)


def status() -> DatabaseStatus:
    return _status
