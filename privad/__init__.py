"""
privAD - Privileged Access Audit for Active Directory
=====================================================

Enumerates the well-known privileged groups of a domain, flattens their
nested (and possibly cyclic) membership, and reports one row per member
with the nesting path that grants it.

Architecture Overview:
----------------------
- ingestion/: Directory gateways (live LDAP via ldap3, JSON snapshots)
- model/: Typed data models, the attribute catalog and the membership graph
- analysis/: Privileged-group location and the membership resolver
- reporting/: Row projection and report writing
- audit.py: Pipeline entry point used by the CLI

Design Decisions:
-----------------
1. The resolver is a generator over an abstract gateway, so it runs the same
   against a domain controller and against a snapshot
2. Recoverable findings (missing groups, cycles, unexpected member types)
   are collected as warnings and reported, never raised
3. NetworkX backs the membership graph used for run statistics
"""

__version__ = "1.0.0"
__author__ = "privAD Team"

from .config import PrivadConfig
