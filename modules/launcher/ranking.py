"""
Merging and ordering of the options shown for a query.
"""

from typing import Dict, List, Mapping, Optional, Sequence

from modules.launcher.history import History
from modules.launcher.option import Identity, Option


def filter_registered(query: str, registered: Mapping[str, Sequence[Option]]) -> List[Option]:
    """
    Registered options whose title contains the query, case-insensitively.

    Args:
        query: The search query
        registered: Registered options per plugin, in registration order

    Returns:
        Matching options in registration order
    """
    if not query:
        return []

    needle = query.lower()
    return [
        option
        for options in registered.values()
        for option in options
        if needle in option.title.lower()
    ]


def force_replace(current: Sequence[Option], fresh: Sequence[Option]) -> List[Option]:
    """
    Merge a fresh batch into the options already on screen.

    A fresh option replaces the on-screen option with the same identity in
    place, fresh options with new identities are appended. Applying the same
    batch twice gives the same list.
    """
    latest: Dict[Identity, Option] = {}
    for option in fresh:
        latest[option.identity] = option

    merged: List[Option] = []
    seen = set()
    for option in list(current) + list(fresh):
        identity = option.identity
        if identity in seen:
            continue
        seen.add(identity)
        merged.append(latest.get(identity, option))
    return merged


def rank(options: Sequence[Option], history: History, anchor: Optional[Option] = None) -> List[Option]:
    """
    Order options by usage.

    Used options come first by descending count, everything else keeps its
    arrival order.
    """
    counts = [history.count(option, anchor) for option in options]
    order = sorted(
        range(len(options)),
        key=lambda i: (counts[i] == 0, -counts[i]),
    )
    return [options[i] for i in order]
