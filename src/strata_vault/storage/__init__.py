"""Storage layer for the Strata vault."""

from strata_vault.storage.connection_repository import ConnectionRepository
from strata_vault.storage.entry_repository import EntryRepository
from strata_vault.storage.frontmatter_codec import DecodeResult, FrontmatterCodec
from strata_vault.storage.search_index import SearchIndex

__all__ = [
    "ConnectionRepository",
    "DecodeResult",
    "EntryRepository",
    "FrontmatterCodec",
    "SearchIndex",
]
