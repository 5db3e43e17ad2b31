"""Sync — the platform layer for placing components into target projects.

This package provides the primitives for:
- Status: classifying components as available, installed, outdated or blocked
- Dependencies: resolving what selected skills need, with cycle detection
- Ledger: the persisted record of what was installed and why
- Merging: marker-tagged edits to shared settings documents
- Orphans: finding dependencies nothing requires any more
"""
