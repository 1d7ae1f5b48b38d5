"""
Strata Vault - the persistence and indexing layer of the Strata note-taking app.
Entries are stored one markdown file per note with a YAML frontmatter block,
kept searchable through an in-memory index, grouped into notebook/section
hierarchies and connected through an undirected link graph.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("strata-vault")
except PackageNotFoundError:
    __version__ = "0.3.0"
