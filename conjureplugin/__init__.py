"""Conjure code generation and IR publishing plugin.

Reads a per-project configuration, resolves each project's IR source, drives an
external generator to write (or verify) output files and publishes IR artifacts.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version


def __getattr__(name: str):
    if name == "__version__":
        try:
            return version("conjure-plugin")
        except PackageNotFoundError:
            return "0.0.0"
    raise AttributeError(name)
