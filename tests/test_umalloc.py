import pytest

from xvkit.umalloc import Allocator, Heap


def test_sbrk_returns_old_break():
    heap = Heap(100)
    assert heap.sbrk(0) == 0
    assert heap.sbrk(40) == 0
    assert heap.sbrk(-10) == 40
    assert heap.brk == 30


def test_sbrk_limits():
    heap = Heap(100)
    with pytest.raises(MemoryError):
        heap.sbrk(101)
    with pytest.raises(MemoryError):
        heap.sbrk(-1)
    assert heap.brk == 0


def test_malloc_within_heap():
    heap = Heap(1 << 20)
    a = Allocator(heap)
    addr = a.malloc(10)
    assert addr % 16 == 0
    assert 16 <= addr and addr + 10 <= heap.brk


def test_blocks_do_not_overlap():
    a = Allocator(Heap(1 << 22))
    sizes = [1, 100, 7, 5000, 64, 3]
    spans = sorted((p, p + n) for n in sizes for p in [a.malloc(n)])
    for (_, end), (start, _) in zip(spans, spans[1:]):
        assert end <= start


def test_free_then_reuse_same_address():
    a = Allocator(Heap(1 << 20))
    first = a.malloc(1)
    a.free(first)
    assert a.malloc(1) == first


def test_heap_too_small():
    a = Allocator(Heap(1000))
    with pytest.raises(MemoryError):
        a.malloc(1)


def test_exhaust_free_all_and_allocate_again():
    heap = Heap(1 << 20)
    a = Allocator(heap)
    got = []
    with pytest.raises(MemoryError):
        while True:
            got.append(a.malloc(10001))
    assert got
    brk = heap.brk
    for p in got:
        a.free(p)
    big = a.malloc(20 * 1024)
    assert heap.brk == brk
    assert big + 20 * 1024 <= brk


def test_free_bad_pointer():
    a = Allocator(Heap(1 << 20))
    a.malloc(8)
    with pytest.raises(ValueError):
        a.free(12345)