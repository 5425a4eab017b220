from .inventory_api import InventoryApiClient, RecordSourceError, RecordNotFoundError
from .photos import PhotoFetcher, PhotoResult, PhotoStatus

__all__ = [
    "InventoryApiClient", "RecordSourceError", "RecordNotFoundError",
    "PhotoFetcher", "PhotoResult", "PhotoStatus",
]
