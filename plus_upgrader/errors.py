from __future__ import annotations

from typing import Optional


class UpgradeError(RuntimeError):
    """Base for every failure the pipeline reports to the operator.

    `stage` is filled in by the pipeline when the error escapes a step.
    """

    exit_code = 1

    def __init__(self, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage


class StageFailed(UpgradeError):
    """Unexpected exception inside a step, wrapped with the step id."""


class PreconditionFailed(UpgradeError):
    exit_code = 2


class TargetNotFound(PreconditionFailed):
    pass


class NetworkUnavailable(UpgradeError):
    exit_code = 3


class PackageInstallFailed(UpgradeError):
    exit_code = 4

    def __init__(self, package: str, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message, stage=stage)
        self.package = package


class ModuleBuildError(UpgradeError):
    exit_code = 5


class ModuleBuildFailed(ModuleBuildError):
    pass


class BuildArtifactMissing(ModuleBuildError):
    pass


class BuildArtifactAmbiguous(ModuleBuildError):
    pass


class ServiceActivationFailed(UpgradeError):
    """Non-fatal: the service step records it and moves on."""

    def __init__(self, service: str, message: str, *, stage: Optional[str] = None) -> None:
        super().__init__(message, stage=stage)
        self.service = service
