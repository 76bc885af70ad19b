from bones.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from bones.clients.github import GitHubClient

__all__ = ["BaseHTTPClient", "GitHubClient", "PermanentHTTPError", "RetryableHTTPError"]
