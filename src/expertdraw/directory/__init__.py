"""Directory module - expert roster and category directory."""

from expertdraw.directory.roster import (
    CategoryDirectory,
    CategoryLookup,
    ExpertRepository,
    ExpertRoster,
)

__all__ = [
    "CategoryDirectory",
    "CategoryLookup",
    "ExpertRepository",
    "ExpertRoster",
]
