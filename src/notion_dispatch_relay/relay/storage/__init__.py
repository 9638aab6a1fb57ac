from notion_dispatch_relay.relay.storage.kv import JsonFileKeyValueStore, KeyValueStore, StoreError

__all__ = ["JsonFileKeyValueStore", "KeyValueStore", "StoreError"]
