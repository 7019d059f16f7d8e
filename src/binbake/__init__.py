"""Public package entrypoint for binbake."""

from .autobuild import autobuild, build_tarballs
from .build import PlatformBuildLoop
from .deploy import DeploymentPipeline
from .errors import (
    AuditFailure,
    BinbakeError,
    BuildFailure,
    DeploymentError,
    IntegrityError,
    InvalidInputError,
    PolicyError,
    RegistrationFailure,
    UploadFailure,
    ValidationError,
)
from .fetch import resolve_sources
from .models import (
    BuildOutputMeta,
    BuildRequest,
    BuildVersion,
    DependencySpec,
    DeployRequest,
    DeployResult,
    ExecutableProduct,
    FileProduct,
    GitRepo,
    LibraryProduct,
    LocalDir,
    Platform,
    RemoteArchive,
)
from .policy import Policy
from .versioning import next_build_version

__all__ = [
    "AuditFailure",
    "BinbakeError",
    "BuildFailure",
    "BuildOutputMeta",
    "BuildRequest",
    "BuildVersion",
    "DependencySpec",
    "DeployRequest",
    "DeployResult",
    "DeploymentError",
    "DeploymentPipeline",
    "ExecutableProduct",
    "FileProduct",
    "GitRepo",
    "IntegrityError",
    "InvalidInputError",
    "LibraryProduct",
    "LocalDir",
    "Platform",
    "PlatformBuildLoop",
    "Policy",
    "PolicyError",
    "RegistrationFailure",
    "RemoteArchive",
    "UploadFailure",
    "ValidationError",
    "autobuild",
    "build_tarballs",
    "next_build_version",
    "resolve_sources",
]
