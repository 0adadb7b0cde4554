"""Clients for the remote tracking API."""

from .jira_api import JiraApiClient, encode_authorization

__all__ = ["JiraApiClient", "encode_authorization"]
