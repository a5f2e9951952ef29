"""Orchestrators behind the conjure-plugin CLI subcommands.

These modules sequence providers, the generator and the publisher; the
algorithms they rely on live in conjureplugin.core.
"""

from __future__ import annotations
