"""
Cache package for the Catalog Service.

Provides the cache-aside coordination layer: key derivation for logical
queries, the read path that consults Redis before PostgreSQL, and the
invalidation policy applied after food mutations.
"""
