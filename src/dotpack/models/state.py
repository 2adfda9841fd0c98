from __future__ import annotations

from enum import StrEnum


class LoadState(StrEnum):
    """Lifecycle of a single package name.

    UNSEEN -> LOADING -> LOADED, or LOADING -> FAILED when failures propagate.
    LOADED and FAILED are terminal.
    """

    UNSEEN = "unseen"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"
