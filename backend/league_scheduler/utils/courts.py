"""
Canonical ordering for venues and courts.

Court labels are free text ("Court 2", "Court 10", "Main"). Plain string
sorting would put "Court 10" before "Court 2", so every place that needs a
stable court order goes through natural_sort_key().
"""
import re
from typing import List, Optional, Tuple

_DIGITS = re.compile(r"(\d+)")


def natural_sort_key(label: Optional[str]) -> Tuple:
    """
    Split a label into text and number chunks so numbers compare numerically.

    - "Court 2"  -> ((1, "court "), (0, 2))
    - "Court 10" -> ((1, "court "), (0, 10))
    - None / ""  -> ()

    Text chunks are case-insensitive. Each chunk is tagged so a number and a
    string never get compared directly.
    """
    if not label:
        return ()
    key = []
    for chunk in _DIGITS.split(label.strip()):
        if not chunk:
            continue
        if chunk.isdigit():
            key.append((0, int(chunk)))
        else:
            key.append((1, chunk.lower()))
    return tuple(key)


def court_sort_key(venue_name: Optional[str], court_name: Optional[str], court_id: Optional[int]) -> Tuple:
    """
    Deterministic scan order for courts.

    Order: venue name → court name (natural) → id
    """
    return (natural_sort_key(venue_name), natural_sort_key(court_name), court_id or 0)


def sort_court_names(names: List[str]) -> List[str]:
    """Return court labels in natural order (Court 1, Court 2, Court 10)."""
    return sorted(names, key=natural_sort_key)
