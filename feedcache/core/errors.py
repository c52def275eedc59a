"""
feedcache/core/errors.py
Typed lookup failures raised by the cache engine.
Route layer maps every CacheError to its `status` (404) via one handler in main.py.
"""


class CacheError(Exception):
    status = 404

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NamespaceNotFound(CacheError):
    def __init__(self, namespace: str):
        super().__init__(f"Could not find namespace: {namespace}")


class CollectionNotFound(CacheError):
    def __init__(self, namespace: str, collection: str):
        super().__init__(f"Could not find collection: {collection} in {namespace}")


class NoItemsInCollection(CacheError):
    def __init__(self, namespace: str, collection: str):
        super().__init__(f"Could not find items in collection: {collection} in {namespace}")


class NoCollectionsInNamespace(CacheError):
    def __init__(self, namespace: str):
        super().__init__(f"No collections available in namespace: {namespace}")


class NoItemsInNamespace(CacheError):
    def __init__(self, namespace: str):
        super().__init__(f"No items available in namespace: {namespace}")


class ItemNotFound(CacheError):
    def __init__(self, item_id: str):
        super().__init__(f"Could not find item with ID: {item_id}")


class PageOutOfRange(CacheError):
    def __init__(self, page: int):
        super().__init__(f"No items found on page: {page}")
        self.page = page
