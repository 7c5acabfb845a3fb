"""Repository scaffolder for Azure DevOps.

This package provisions a new repository from a template and wires it
into delivery infrastructure:
- Repository creation through the Azure DevOps REST API
- Template materialization (clone, drop history, single initial commit)
- Registration as an Azure Pipelines pipeline or an Argo CD Application
- A linear workflow state machine with an explicit no-rollback contract
"""
