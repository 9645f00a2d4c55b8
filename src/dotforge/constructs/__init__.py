"""Construct tree: Stack aggregate, workflows, jobs and file resources."""

from __future__ import annotations

from dotforge.constructs.base import Construct, ConstructNode, Job, Resource, Stack, Workflow
from dotforge.constructs.resource import (
    CodeownersConstruct,
    DependabotConstruct,
    DirectoryResourceConstruct,
    FileResourceConstruct,
    PullRequestTemplateConstruct,
    ResourceConstruct,
)
from dotforge.constructs.shared_workflow import SharedWorkflowConstruct
from dotforge.constructs.workflow import JobConstruct, WorkflowConstruct

__all__ = [
    "CodeownersConstruct",
    "Construct",
    "ConstructNode",
    "DependabotConstruct",
    "DirectoryResourceConstruct",
    "FileResourceConstruct",
    "Job",
    "JobConstruct",
    "PullRequestTemplateConstruct",
    "Resource",
    "ResourceConstruct",
    "SharedWorkflowConstruct",
    "Stack",
    "Workflow",
    "WorkflowConstruct",
]
