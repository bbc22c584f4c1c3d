"""Dependency injection (db sessions, collaborators)"""

from functools import lru_cache

from sqlalchemy.ext.asyncio import async_sessionmaker

from splitbill.database import AsyncSessionLocal
from splitbill.services.receipt_scanner import ReceiptScanner


@lru_cache()
def get_receipt_scanner() -> ReceiptScanner:
    """
    Get the shared receipt scanner.

    Returns:
        ReceiptScanner configured from settings
    """
    return ReceiptScanner()


def get_session_factory() -> async_sessionmaker:
    """
    Session factory for long-lived handlers (websockets) that open a fresh
    session per unit of work instead of holding one request session.
    """
    return AsyncSessionLocal
