"""Delivery registration for provisioned repositories.

Two variants, selected by workflow mode:
- PipelineRegistrar: Azure Pipelines YAML pipeline bound to the repository
- GitOpsRegistrar: Argo CD Application tracking the repository
"""

from src.scaffolder.registrar.gitops import GitOpsRegistrar, build_application_manifest
from src.scaffolder.registrar.pipeline import PipelineRegistrar, build_pipeline_definition

__all__ = [
    "GitOpsRegistrar",
    "PipelineRegistrar",
    "build_application_manifest",
    "build_pipeline_definition",
]
