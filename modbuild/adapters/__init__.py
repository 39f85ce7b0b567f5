"""modbuild adapters.

Leaf implementations of the build contract, one per toolchain.

Key classes:
    BuildUnit          - The contract shared by adapters and orchestrators
    SubprocessAdapter  - Base for adapters that run a toolchain command
    CargoAdapter       - Rust crates via cargo
    MakeAdapter        - Makefile-driven directories via make
    CommandAdapter     - User-declared shell commands
"""

from .base import Action, BuildUnit, SubprocessAdapter, resolve_module_build_dir
from .cargo import CargoAdapter
from .command import CommandAdapter
from .factory import create_adapter
from .make import MakeAdapter

__all__ = [
    # Contract
    "Action",
    "BuildUnit",
    "SubprocessAdapter",
    "resolve_module_build_dir",
    # Toolchains
    "CargoAdapter",
    "MakeAdapter",
    "CommandAdapter",
    "create_adapter",
]
