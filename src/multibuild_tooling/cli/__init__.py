"""CLI for multibuild_tooling. Entry point: multibuild_tooling.cli.main:main"""
