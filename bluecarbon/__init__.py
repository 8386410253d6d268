"""
Blue Carbon Registry
====================

Registry backend for blue-carbon restoration projects: projects,
stakeholders, MRV (Monitoring, Reporting, Verification) submissions,
carbon credits and registry statistics over flat JSON collections.

Packages:
    - bluecarbon.registry: record store, transition table, statistics,
      registry service, FastAPI router and HTTP client
    - bluecarbon.cli: ``bluecarbon`` command line interface
"""

from ._version import __version__

__author__ = "Blue Carbon Registry Team"
__license__ = "MIT"

__all__ = ["__version__"]
