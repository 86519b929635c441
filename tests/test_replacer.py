import pytest

from rmstore.replacer import LRUReplacer, Replacer


def test_victim_on_empty_returns_none():
    replacer = LRUReplacer(4)
    assert replacer.victim() is None


def test_victims_come_out_in_unpin_order():
    replacer = LRUReplacer(8)
    for frame in (5, 1, 7):
        replacer.unpin(frame)
    assert [replacer.victim(), replacer.victim(), replacer.victim()] == [5, 1, 7]
    assert replacer.victim() is None


def test_pin_removes_frame_from_candidates():
    replacer = LRUReplacer(8)
    replacer.unpin(1)
    replacer.unpin(2)
    replacer.pin(1)
    assert replacer.size() == 1
    assert replacer.victim() == 2
    assert replacer.victim() is None


def test_unpin_twice_keeps_single_entry_and_position():
    replacer = LRUReplacer(8)
    replacer.unpin(3)
    replacer.unpin(4)
    replacer.unpin(3)
    assert replacer.size() == 2
    assert replacer.victim() == 3


def test_pin_of_unknown_frame_is_harmless():
    replacer = LRUReplacer(8)
    replacer.unpin(9)
    replacer.pin(42)
    assert len(replacer) == 1


def test_size_tracks_unpins_and_victims():
    replacer = LRUReplacer(8)
    for frame in range(6):
        replacer.unpin(frame)
    assert replacer.size() == 6
    replacer.victim()
    replacer.pin(5)
    assert replacer.size() == 4


def test_repin_then_unpin_moves_frame_to_most_recent():
    replacer = LRUReplacer(8)
    replacer.unpin(1)
    replacer.unpin(2)
    replacer.pin(1)
    replacer.unpin(1)
    assert replacer.victim() == 2
    assert replacer.victim() == 1


def test_replacer_is_abstract():
    with pytest.raises(TypeError):
        Replacer()