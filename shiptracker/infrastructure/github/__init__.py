"""GitHub API Implementation.

Contains the httpx-based client implementing the `GitHubApi` interface
from the domain layer.
"""
