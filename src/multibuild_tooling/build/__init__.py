"""Build backends (host cargo, containerized cross cargo) behind one execute(target) contract."""

from .backends import (
    BACKENDS,
    BuildBackend,
    BuildResult,
    ContainerizedBackend,
    NativeBackend,
    backend_for,
    run_containerized,
    run_native,
)

__all__ = [
    "BACKENDS",
    "BuildBackend",
    "BuildResult",
    "ContainerizedBackend",
    "NativeBackend",
    "backend_for",
    "run_containerized",
    "run_native",
]
