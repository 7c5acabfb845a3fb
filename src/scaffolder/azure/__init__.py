"""Azure DevOps REST API client.

This module provides a thin async wrapper around the Azure DevOps
endpoints used to create repositories and YAML pipelines.
"""

from src.scaffolder.azure.client import AzureDevOpsAPIError, AzureDevOpsClient

__all__ = [
    "AzureDevOpsAPIError",
    "AzureDevOpsClient",
]
