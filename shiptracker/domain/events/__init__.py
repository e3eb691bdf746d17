"""Domain Event definitions.

Represents significant occurrences during API access (calls, retries, cache
hits, finished batches) that observers such as logging or tests can react to.
"""
