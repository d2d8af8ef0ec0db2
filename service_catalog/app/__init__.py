"""
Catalog Service package for the Food Catalog.

This package serves food catalog queries (list, by category, by name, by
price range) from a Redis cache in front of PostgreSQL. It provides:

- app.main: API surface for catalog reads, food mutations and health.
- app.cache: Cache keys, the cache-aside read path and invalidation policy.
- app.persistence: PostgreSQL storage for foods and categories.
- app.mutations: Create/update/delete followed by cache invalidation.

Guidelines:
- PostgreSQL is the source of truth; cached results are time-bounded copies.
- Cache failures degrade to store reads and are never surfaced to clients.
- Mutations write the store, then invalidate, then respond.
"""
