"""
FastAPI dependencies
"""

from typing import AsyncIterator

from core.database import WarehouseClient, get_warehouse_client
from ingestion.checkpoint import SyncStateStore


def get_state_store() -> SyncStateStore:
    return SyncStateStore()


async def get_warehouse() -> AsyncIterator[WarehouseClient]:
    """Yield an unconnected client; the caller decides whether to connect"""
    client = get_warehouse_client()
    try:
        yield client
    finally:
        await client.disconnect()
