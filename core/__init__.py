"""
Core utilities and configuration for the carelog ingestion system.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session factory and scoped sessions
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration (text or JSON)

Usage:
    from core.config import settings
    from core.database import session_scope
    from core.exceptions import SourceUnavailable, ForeignKeyError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with session_scope() as session:
        # Perform database operations
        pass
"""
