"""Deployment of built tarballs: wrapper code, registry staging and release upload."""

from .credentials import Credentials, git_auth_env, scoped_credentials
from .github import GitHubCliService, RemoteService
from .pipeline import DeploymentPipeline, upload_with_retry
from .registration import (
    GitRegistryStager,
    RegistrationResult,
    RegistryClone,
    RegistryStager,
)
from .wrappers import ArtifactsManifestGenerator, WrapperGenerator, package_uuid

__all__ = [
    "ArtifactsManifestGenerator",
    "Credentials",
    "DeploymentPipeline",
    "GitHubCliService",
    "GitRegistryStager",
    "RegistrationResult",
    "RegistryClone",
    "RegistryStager",
    "RemoteService",
    "WrapperGenerator",
    "git_auth_env",
    "package_uuid",
    "scoped_credentials",
    "upload_with_retry",
]
