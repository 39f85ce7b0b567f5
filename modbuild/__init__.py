"""modbuild -- multi-module build orchestrator.

Delegates build, test, clean and format actions to per-module build units
while keeping every module's artifacts under ``<build_root>/<module>/``.

Key classes:
    Orchestrator       - Drives every declared module of a project
    ModuleDelegate     - Runs one module's actions under the shared root
    LibraryDelegate    - The same, for the auxiliary library directory
    BuildRootManager   - Idempotent creation and removal of build roots
    ProjectConfig      - Parsed ``modbuild.yaml`` manifest
"""

from .adapters import Action, BuildUnit, CargoAdapter, CommandAdapter, MakeAdapter
from .buildroot import BuildRootError, BuildRootManager
from .config import AdapterSpec, ConfigurationError, ModuleSpec, ProjectConfig
from .delegate import LibraryDelegate, ModuleDelegate
from .orchestrator import Orchestrator, load_unit
from .results import DelegateResult, RunReport

__all__ = [
    # Orchestration
    "Orchestrator",
    "ModuleDelegate",
    "LibraryDelegate",
    "load_unit",
    # Contract & adapters
    "Action",
    "BuildUnit",
    "CargoAdapter",
    "MakeAdapter",
    "CommandAdapter",
    # Build root
    "BuildRootManager",
    "BuildRootError",
    # Configuration
    "ProjectConfig",
    "ModuleSpec",
    "AdapterSpec",
    "ConfigurationError",
    # Results
    "DelegateResult",
    "RunReport",
]
