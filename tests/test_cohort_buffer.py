from __future__ import annotations

import pytest

from virus_engine import CohortBuffer


def test_new_buffer_is_zeroed() -> None:
    buf = CohortBuffer(30)
    assert len(buf) == 30
    assert buf.to_list() == [0.0] * 30
    assert buf.total() == 0.0


def test_empty_buffer_rejected() -> None:
    with pytest.raises(ValueError):
        CohortBuffer(0)


def test_retire_oldest_ages_every_cohort() -> None:
    buf = CohortBuffer.from_list([1, 2, 3])

    sick = buf.retire_oldest()

    assert sick == 3.0
    assert buf.to_list() == [0.0, 1.0, 2.0]


def test_append_after_retire_lands_in_vacated_slot() -> None:
    buf = CohortBuffer.from_list([1, 2, 3])
    buf.retire_oldest()
    buf.append_newest(5)
    assert buf.to_list() == [5.0, 1.0, 2.0]

    assert buf.retire_oldest() == 2.0
    assert buf.to_list() == [0.0, 5.0, 1.0]


def test_ring_wraps_around_many_days() -> None:
    buf = CohortBuffer(3)
    retired = []
    for day in range(1, 8):
        buf.append_newest(day)
        retired.append(buf.retire_oldest())

    # a cohort is retired at the third boundary after it was added
    assert retired == [0.0, 0.0, 1.0, 2.0, 3.0, 4.0, 5.0]
    assert buf.to_list() == [0.0, 7.0, 6.0]


def test_contagious_window_is_clamped() -> None:
    buf = CohortBuffer.from_list([1, 2, 3])
    assert buf.contagious(0) == 0.0
    assert buf.contagious(-4) == 0.0
    assert buf.contagious(2) == 3.0
    assert buf.contagious(99) == 6.0


def test_add_to_oldest_and_indexing() -> None:
    buf = CohortBuffer(4)
    buf.add_to_oldest(1)
    assert buf[-1] == 1.0
    assert buf[3] == 1.0
    assert buf[0] == 0.0
    with pytest.raises(IndexError):
        buf[4]


def test_copy_is_independent() -> None:
    buf = CohortBuffer.from_list([1, 2, 3])
    other = buf.copy()
    other.retire_oldest()
    other.append_newest(9)

    assert buf.to_list() == [1.0, 2.0, 3.0]
    assert other.to_list() == [9.0, 1.0, 2.0]
    assert buf != other
    assert buf == CohortBuffer.from_list([1, 2, 3])
