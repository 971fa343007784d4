"""
CLI layer for setu.

A Typer application whose commands delegate to the operations layer
(``setu.ops``).  All behaviour lives in ops; this package only parses
arguments and renders results.

Entry point::

    setu --help
"""

from setu.cli.app import app

__all__ = ["app"]
