"""User/role storage (Postgres, with an in-memory fallback for local dev and tests).

Postgres drivers are imported lazily inside functions so the API can start without DB access.
"""
