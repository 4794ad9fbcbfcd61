"""Services for the KDP cover backend"""

from web.backend.services.history_store import HistoryStore

__all__ = ["HistoryStore"]
