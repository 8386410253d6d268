# -*- coding: utf-8 -*-
"""Command line interface for the Blue Carbon Registry."""

from bluecarbon.cli.main import app

__all__ = ["app"]
