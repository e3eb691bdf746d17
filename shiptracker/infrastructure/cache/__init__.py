"""Caching Service Implementation.

Provides the in-memory implementation of the CacheService interface with
per-entry TTL and lazy expiry.
Bounded Context: Cache Management
"""
