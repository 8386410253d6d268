# -*- coding: utf-8 -*-
"""REST API for the Blue Carbon Registry."""

from bluecarbon.registry.api.app import create_app
from bluecarbon.registry.api.router import router

__all__ = ["create_app", "router"]
