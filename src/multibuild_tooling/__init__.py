"""Multi-target release tooling: build each target on its backend, collect into a staging tree, package."""

__version__ = "0.1.0"
