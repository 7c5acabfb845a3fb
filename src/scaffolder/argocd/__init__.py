"""Argo CD REST API client."""

from src.scaffolder.argocd.client import ArgoCDAPIError, ArgoCDClient

__all__ = [
    "ArgoCDAPIError",
    "ArgoCDClient",
]
