"""
Cache package for the Directory service.

Provides deterministic key derivation for point and list queries, the JSON
value codec, the list-key invalidation engine and a Redis-backed cache.
"""
