"""Advertising platform (Graph API) access."""

from .client import GraphClient, RetryPolicy, UpstreamError, account_path

__all__ = ["GraphClient", "RetryPolicy", "UpstreamError", "account_path"]
