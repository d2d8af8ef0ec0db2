"""
Persistence package for the Catalog Service.

PostgreSQL is the source of truth for foods and categories; the cache only
ever holds time-bounded copies of query results.
"""
