import os

import pytest

from xvkit.grind import Grinder, ParkMiller, main


@pytest.fixture
def grinder(tmp_path):
    return Grinder(tmp_path, 0, 31)


def test_park_miller_first_value():
    assert ParkMiller(1).next() == 33613


def test_park_miller_range_and_determinism():
    a, b = ParkMiller(7177), ParkMiller(7177)
    seq_a = [a.next() for _ in range(1000)]
    seq_b = [b.next() for _ in range(1000)]
    assert seq_a == seq_b
    assert all(0 <= x <= 0x7FFFFFFD for x in seq_a)


def test_init_creates_grindir(tmp_path, grinder):
    assert os.path.isdir(tmp_path / "grindir")
    assert grinder.cwd == []


def test_init_fails_when_grindir_is_a_file(tmp_path):
    (tmp_path / "grindir").write_bytes(b"")
    with pytest.raises(RuntimeError, match="chdir grindir failed"):
        Grinder(tmp_path, 0, 1)


def test_create_and_unlink_a(tmp_path, grinder):
    grinder.step(1)
    assert grinder.cwd == []
    assert (tmp_path / "a").is_file()
    grinder.step(3)
    assert grinder.cwd == []
    assert not (tmp_path / "a").exists()


def test_step4_removes_b_and_returns_to_root(tmp_path, grinder):
    grinder.step(2)
    assert (tmp_path / "b").is_file()
    grinder.step(4)
    assert not (tmp_path / "b").exists()
    assert grinder.cwd == []


def test_write_through_descriptor(tmp_path, grinder):
    grinder.step(5)
    grinder.step(7)
    assert grinder.cwd == []
    assert grinder.heap.brk == grinder.break0
    assert (tmp_path / "a").stat().st_size == 999


def test_step9_makes_empty_directory(tmp_path, grinder):
    grinder.step(9)
    assert grinder.cwd == []
    assert (tmp_path / "a").is_dir()
    assert os.listdir(tmp_path / "a") == []


def test_step10_makes_empty_directory_b(tmp_path, grinder):
    grinder.step(10)
    assert grinder.cwd == []
    assert (tmp_path / "b").is_dir()
    assert os.listdir(tmp_path / "b") == []


def test_step11_links_a_to_b(tmp_path, grinder):
    grinder.step(1)
    grinder.step(11)
    assert grinder.cwd == []
    assert os.path.samefile(tmp_path / "a", tmp_path / "b")


def test_step12_links_b_to_a(tmp_path, grinder):
    grinder.step(2)
    grinder.step(12)
    assert grinder.cwd == []
    assert os.path.samefile(tmp_path / "a", tmp_path / "b")


def test_sbrk_grow_and_shrink(grinder):
    start = grinder.heap.brk
    grinder.step(15)
    assert grinder.heap.brk == start + 6011
    grinder.step(16)
    assert grinder.heap.brk == grinder.break0


def test_step17_creates_a_and_stays_at_root(tmp_path, grinder):
    grinder.step(17)
    assert (tmp_path / "a").is_file()
    assert grinder.cwd == []


def test_step20_leaves_no_a(tmp_path, grinder):
    grinder.step(20)
    assert grinder.cwd == []
    assert not (tmp_path / "a").exists()


def test_step21_and_pipeline_leave_nothing(tmp_path, grinder):
    grinder.step(21)
    grinder.step(22)
    grinder.step(19)
    assert grinder.cwd == []
    assert grinder.heap.brk == grinder.break0
    assert sorted(os.listdir(tmp_path)) == ["grindir"]


def test_unknown_operation(grinder):
    with pytest.raises(ValueError):
        grinder.step(23)


def test_run_is_deterministic(tmp_path):
    (tmp_path / "one").mkdir()
    (tmp_path / "two").mkdir()
    first = Grinder(tmp_path / "one", 0, 31).run(300)
    second = Grinder(tmp_path / "two", 0, 31).run(300)
    assert first == second
    assert len(first) == 300
    assert all(0 <= w < 23 for w in first)


def test_main_single_round(tmp_path):
    assert main([str(tmp_path), "1"]) == 0
    assert (tmp_path / "grindir").is_dir()


def test_main_bad_iterations(tmp_path):
    assert main([str(tmp_path), "many"]) == 1