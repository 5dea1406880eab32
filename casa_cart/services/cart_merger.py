# casa_cart/services/cart_merger.py
"""
Merge-at-read repair of cart lines.

Lines are keyed by ``(product_id, size)``. The first line of every key
absorbs the quantity of any later line with the same key and keeps its own
position and ``price_at_add``; the later lines are dropped. Running the
merge on its own output changes nothing.
"""
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Tuple


@dataclass(frozen=True)
class MergeResult:
    # (first occurrence, merged quantity), in input order
    merged: List[Tuple[Any, int]] = field(default_factory=list)
    dropped: List[Any] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.dropped)

    @property
    def kept(self) -> List[Any]:
        return [item for item, _ in self.merged]


def line_key(item) -> Tuple[str, str]:
    return str(item.product_id), item.size


def merge_duplicate_items(items: Sequence[Any]) -> MergeResult:
    positions = {}
    merged: List[Tuple[Any, int]] = []
    dropped: List[Any] = []

    for item in items:
        key = line_key(item)
        if key in positions:
            idx = positions[key]
            first, quantity = merged[idx]
            merged[idx] = (first, quantity + item.quantity)
            dropped.append(item)
        else:
            positions[key] = len(merged)
            merged.append((item, item.quantity))

    return MergeResult(merged=merged, dropped=dropped)
