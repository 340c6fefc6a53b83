from .step_10_validate_disk import ValidateDiskStep
from .step_20_bind_storage import BindStorageStep
from .step_30_collect_parameters import CollectParametersStep
from .step_40_configure_packages import ConfigurePackagesStep
from .step_50_harden import HardenStep
from .step_60_report import ReportStep
from .step_70_self_remove import SelfRemoveStep

__all__ = [
    "ValidateDiskStep",
    "BindStorageStep",
    "CollectParametersStep",
    "ConfigurePackagesStep",
    "HardenStep",
    "ReportStep",
    "SelfRemoveStep",
]
