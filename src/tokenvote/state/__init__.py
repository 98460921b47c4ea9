"""State layer.

This package owns how the catalog snapshot and the live tally feed are
merged into the ordered view the presentation layer renders.
"""

from tokenvote.state.board import BoardState, VoteBoard
from tokenvote.state.view import derive_view, join_catalog, matches_search

__all__ = [
    "BoardState",
    "VoteBoard",
    "derive_view",
    "join_catalog",
    "matches_search",
]
