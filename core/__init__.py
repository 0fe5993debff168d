"""
Core utilities and configuration for the report sync service.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Warehouse connection management (WarehouseClient)
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration (console + daily rotating files)

Usage:
    from core.config import settings
    from core.database import WarehouseClient
    from core.exceptions import LoadError, TransportError
    from core.logging import setup_logging

Example:
    setup_logging()

    warehouse = WarehouseClient()
    await warehouse.connect()
    try:
        await warehouse.execute("SELECT 1")
    finally:
        await warehouse.disconnect()
"""

__all__ = [
    "settings",
    "WarehouseClient",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "APIExtractionError",
    "TransportError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "RateLimitError",
    "TransformationError",
    "LoadError",
    "DatabaseError",
    "StagingError",
    "CheckpointError",
    "StateCorruptionError",
    "ConfigurationError",
    "ReportFailedError",
]
