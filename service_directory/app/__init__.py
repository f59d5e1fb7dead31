"""
Directory Service package.

The directory stores records addressed by a unique name, lists them by
category and region, and keeps a running average rating per record. A
look-aside cache sits in front of the record store and is kept coherent by
invalidating every listing a write could affect.

Structure:
- app.main: FastAPI app, routes, and component wiring.
- app.records: Record model, cache-consistent record service, rating aggregation.
- app.cache: Cache key derivation, value codec, invalidation, Redis backend.
- app.persistence: Record stores (PostgreSQL and in-memory).

Guidelines:
- The record store is the source of truth; cache failures never fail a request.
- Cache keys are pure functions of query filters; nothing is tracked per record.
"""
