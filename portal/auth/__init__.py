"""
Authentication for the portal API.

Design goals:
- Provider-agnostic (generic OAuth shape; GitHub selectable by config).
- One linear login pipeline; every failure is scoped to the request that hit it.
- Stateless bearer session tokens (signed JWT) for the frontend.
"""
