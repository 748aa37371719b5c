from .step_00_preflight import PreflightStep
from .step_10_network import NetworkStep
from .step_20_packages import InstallPackagesStep
from .step_30_build_module import BuildModuleStep
from .step_40_deploy_files import DeployFilesStep
from .step_50_normalize_permissions import NormalizePermissionsStep
from .step_60_activate_services import ActivateServicesStep
from .step_70_import_assets import ImportAssetsStep
from .step_90_finalize import FinalizeStep

__all__ = [
    "PreflightStep",
    "NetworkStep",
    "InstallPackagesStep",
    "BuildModuleStep",
    "DeployFilesStep",
    "NormalizePermissionsStep",
    "ActivateServicesStep",
    "ImportAssetsStep",
    "FinalizeStep",
]
