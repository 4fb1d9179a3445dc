"""
test_pool.py — WorkbookPool reuse, capacity and style caches.

Covers:
  - acquired workbooks are clean (no sheets, bootstrap styles only)
  - reuse after release, disposal beyond capacity
  - disabled pooling
  - lease() context manager
  - color / border caches with fallbacks
  - concurrent acquire/release never exceeds capacity
"""
from __future__ import annotations

import threading

from openpyxl.styles import Font

from combo_export.pool import WorkbookPool, workbook_is_clean


def _dirty(wb):
    ws = wb.create_sheet("Data")
    ws.append(["a", "b"])
    ws["A1"].font = Font(bold=True, name="Arial")
    return wb


# ══════════════════════════════════════════════════════════════════════════════
# ACQUIRE / RELEASE
# ══════════════════════════════════════════════════════════════════════════════

def test_new_workbook_is_clean():
    pool = WorkbookPool()
    wb = pool.acquire()
    assert workbook_is_clean(wb)


def test_released_workbook_is_reused_clean():
    pool = WorkbookPool(capacity=2)
    wb = _dirty(pool.acquire())
    pool.release(wb)
    again = pool.acquire()
    assert again is wb
    assert workbook_is_clean(again)
    assert pool.statistics()["reused"] == 1


def test_reused_workbook_accepts_new_sheet():
    pool = WorkbookPool()
    pool.release(_dirty(pool.acquire()))
    wb = pool.acquire()
    ws = wb.create_sheet("Export Data")
    ws.append([1, 2, 3])
    assert ws.max_row == 1


def test_capacity_bounds_idle_workbooks():
    pool = WorkbookPool(capacity=2)
    wbs = [pool.acquire() for _ in range(4)]
    for wb in wbs:
        pool.release(wb)
    stats = pool.statistics()
    assert stats["idle"] == 2
    assert stats["disposed"] == 2
    assert stats["created"] == 4


def test_disabled_pool_never_reuses():
    pool = WorkbookPool(enabled=False)
    wb = pool.acquire()
    pool.release(wb)
    assert pool.acquire() is not wb
    stats = pool.statistics()
    assert stats["idle"] == 0
    assert stats["disposed"] == 1


def test_release_none_is_noop():
    pool = WorkbookPool()
    pool.release(None)
    assert pool.statistics()["idle"] == 0


def test_lease_returns_workbook():
    pool = WorkbookPool()
    with pool.lease() as wb:
        _dirty(wb)
    assert pool.statistics()["idle"] == 1


def test_clear_disposes_idle():
    pool = WorkbookPool()
    pool.release(pool.acquire())
    pool.clear()
    stats = pool.statistics()
    assert stats["idle"] == 0
    assert stats["disposed"] == 1


def test_concurrent_use_respects_capacity():
    pool = WorkbookPool(capacity=3)
    errors = []

    def work():
        try:
            for _ in range(20):
                with pool.lease() as wb:
                    assert workbook_is_clean(wb)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=work) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
    assert pool.statistics()["idle"] <= 3


# ══════════════════════════════════════════════════════════════════════════════
# STYLE CACHES
# ══════════════════════════════════════════════════════════════════════════════

def test_seeded_colors():
    pool = WorkbookPool()
    assert pool.color("#4F81BD").rgb == "FF4F81BD"
    assert pool.statistics()["cached_colors"] == 4


def test_color_cached_instance():
    pool = WorkbookPool()
    assert pool.color("#123456") is pool.color("#123456")
    assert pool.color("abcdef").rgb == "FFABCDEF"


def test_invalid_color_falls_back():
    pool = WorkbookPool()
    assert pool.color("not-a-color").rgb == "FF4F81BD"
    assert pool.color("").rgb == "FF4F81BD"


def test_border_sides():
    pool = WorkbookPool()
    assert pool.border_side("thin").style == "thin"
    assert pool.border_side("THICK").style == "thick"
    assert pool.border_side("none") is None
    assert pool.border_side("dotted-ish").style == "thin"
