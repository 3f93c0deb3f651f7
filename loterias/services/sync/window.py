"""Pure operations on contest windows.

A window is a list of contest records (plain dicts from the Caixa API) for one
game. Contest numbers are unique within a window, at most ``size`` of them are
kept (the highest ones), and the stored form is sorted ascending.
"""
from typing import Dict, Iterable, List


def contest_number(record: dict) -> int:
    """Contest number (``numero``) of a record."""
    return int(record["numero"])


def latest_contest_number(window: Iterable[dict]) -> int:
    """Highest contest number in the window, or 0 when it is empty."""
    return max((contest_number(r) for r in window), default=0)


def bootstrap_numbers(latest: int, size: int) -> List[int]:
    """Contest numbers ``latest, latest-1, ...`` down to ``size`` of them, all > 0."""
    return [n for n in range(latest, latest - size, -1) if n > 0]


def missing_numbers(latest_stored: int, latest_api: int) -> List[int]:
    """Contest numbers in ``(latest_stored, latest_api]``."""
    return list(range(latest_stored + 1, latest_api + 1))


def merge_window(existing: Iterable[dict], incoming: Iterable[dict], size: int) -> List[dict]:
    """
    Merge incoming contests into a window and cap it.

    Records are deduplicated by contest number (incoming wins), only the
    ``size`` highest numbers are kept and the result is sorted ascending.
    """
    by_number: Dict[int, dict] = {}
    for record in existing:
        by_number[contest_number(record)] = record
    for record in incoming:
        by_number[contest_number(record)] = record

    kept = sorted(by_number, reverse=True)[:size]
    return [by_number[n] for n in sorted(kept)]


def descending(window: Iterable[dict]) -> List[dict]:
    """Most recent contest first."""
    return sorted(window, key=contest_number, reverse=True)
