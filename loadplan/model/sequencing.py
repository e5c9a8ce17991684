from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from .entities import PRIORITY_RANK, Item, Placement, Unit


def delivery_proxy(items: Iterable[Item]) -> Dict[str, float]:
    """
    Delivery-order proxy per item id: the explicit `delivery_order` when set,
    else the rank of the item's delivery label by first appearance.
    """
    label_rank: Dict[str, int] = {}
    proxy: Dict[str, float] = {}
    for item in items:
        if item.delivery not in label_rank:
            label_rank[item.delivery] = len(label_rank)
        if item.id in proxy:
            continue
        if item.delivery_order is not None:
            proxy[item.id] = float(item.delivery_order)
        else:
            proxy[item.id] = float(label_rank[item.delivery])
    return proxy


def item_sort_key(sequence: str, proxy: Dict[str, float]) -> Callable[[Item], Tuple]:
    def order_of(item: Item) -> float:
        return proxy.get(item.id, 0.0)

    if sequence == "lifo":
        return lambda item: (order_of(item),)
    if sequence == "fifo":
        return lambda item: (-order_of(item),)
    if sequence == "route":
        return lambda item: (item.route, order_of(item))
    if sequence == "weight":
        return lambda item: (-item.total_weight,)
    if sequence == "priority":
        return lambda item: (PRIORITY_RANK[item.priority],)
    raise ValueError(f"Unknown loading sequence: {sequence}")


def order_units(units: Sequence[Unit], sequence: str, proxy: Dict[str, float]) -> List[Unit]:
    key = item_sort_key(sequence, proxy)
    return sorted(units, key=lambda u: key(u.item))


def order_placements(placements: Sequence[Placement], sequence: str, proxy: Dict[str, float]) -> List[Placement]:
    """Reorders reporting sequence only; positions are untouched. Sets `sequence` 1..n."""
    key = item_sort_key(sequence, proxy)
    ordered = sorted(placements, key=lambda p: key(p.item))
    for i, p in enumerate(ordered, start=1):
        p.sequence = i
    return ordered
