"""Repository provisioning and template materialization.

This module creates the remote repository on Azure DevOps and fills it
with template content:
- RepositoryProvisioner: creates the empty remote repository
- TemplateMaterializer: clones a template, drops its history and pushes
  a single initial commit
- GitRunner: async git subprocess execution with timeouts
"""

from src.scaffolder.provisioner.git import GitRunner
from src.scaffolder.provisioner.repository import RepositoryProvisioner
from src.scaffolder.provisioner.template import TemplateMaterializer

__all__ = [
    "GitRunner",
    "RepositoryProvisioner",
    "TemplateMaterializer",
]
