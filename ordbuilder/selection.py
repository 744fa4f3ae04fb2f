"""
Cardinal UTXO selection

Cardinal UTXOs are those that are unlocked, contain no inscriptions, and
contain no runes, and can therefore be used to pad transactions and pay fees.
Sometimes multiple cardinal UTXOs are needed and depending on the context we
want to select either ones above or under (when trying to consolidate dust
outputs) the target value.
"""

from __future__ import annotations

from typing import AbstractSet, Iterable, Mapping

from ordbuilder.errors import NotEnoughCardinalUtxos
from ordbuilder.log import get_logger
from ordbuilder.primitives import OutPoint

logger = get_logger(__name__)

__all__ = ["cardinal_utxos", "is_better_candidate", "select_cardinal_utxo"]


def cardinal_utxos(utxos: Iterable[OutPoint], inscribed: AbstractSet[OutPoint] = frozenset(),
                   locked: AbstractSet[OutPoint] = frozenset(),
                   runic: AbstractSet[OutPoint] = frozenset()) -> list[OutPoint]:
    """Return the selectable outpoints of `utxos` in outpoint order."""
    return [
        utxo for utxo in sorted(utxos)
        if utxo not in runic and utxo not in inscribed and utxo not in locked
    ]


def is_better_candidate(current_value: int, best_value: int, target_value: int, prefer_under: bool) -> bool:
    """
    Decide whether `current_value` displaces the incumbent `best_value`.

    A candidate wins when it is closer to the target and on the preferred side,
    when it is closer and the incumbent is on the wrong side, or when it is the
    first to reach the preferred side at all, even if it is farther away.
    """
    is_closer = abs(current_value - target_value) < abs(best_value - target_value)

    if prefer_under:
        best_on_side = best_value <= target_value
        current_on_side = current_value <= target_value
    else:
        best_on_side = best_value >= target_value
        current_on_side = current_value >= target_value

    not_preference_but_closer = not best_on_side and is_closer
    is_preference_and_closer = current_on_side and is_closer
    newly_meets_preference = not best_on_side and current_on_side

    return is_preference_and_closer or not_preference_but_closer or newly_meets_preference


def select_cardinal_utxo(utxos: set[OutPoint], amounts: Mapping[OutPoint, int], target_value: int,
                         prefer_under: bool, *, inscribed: AbstractSet[OutPoint] = frozenset(),
                         locked: AbstractSet[OutPoint] = frozenset(),
                         runic: AbstractSet[OutPoint] = frozenset()) -> tuple[OutPoint, int]:
    """
    Pick the cardinal UTXO that best matches `target_value` and remove it from `utxos`.

    Raises:
        NotEnoughCardinalUtxos: no cardinal UTXO is left
    """
    logger.debug(f"looking for {'smaller' if prefer_under else 'bigger'} cardinal worth {target_value}")

    best_match = None
    for utxo in cardinal_utxos(utxos, inscribed, locked, runic):
        current_value = amounts[utxo]

        if best_match is None:
            best_match = (utxo, current_value)
            continue

        if is_better_candidate(current_value, best_match[1], target_value, prefer_under):
            best_match = (utxo, current_value)

    if best_match is None:
        raise NotEnoughCardinalUtxos()

    utxo, value = best_match
    utxos.remove(utxo)
    logger.debug(f"found cardinal worth {value}")

    return utxo, value
