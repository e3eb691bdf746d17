"""API Resilience Implementations.

Contains the retry executor that waits out GitHub rate limits (reset header
or exponential backoff) and the batch executor used for bulk imports.
Bounded Context: API Resilience
"""
