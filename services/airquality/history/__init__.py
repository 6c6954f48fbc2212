from services.airquality.history.store import HistoryPoint, HistoryStore

__all__ = ["HistoryPoint", "HistoryStore"]
