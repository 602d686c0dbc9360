import pytest

from xvkit.riscv import MAXVA, PGSIZE, PTE_R, PTE_U, PTE_W, PTE_X, pte_flags
from xvkit.vm import BadAddress, KernelPanic, OutOfMemory, PageTable, PhysicalMemory

USER = PTE_R | PTE_W | PTE_X | PTE_U


@pytest.fixture
def mem():
    return PhysicalMemory(64)


@pytest.fixture
def pt(mem):
    return PageTable.create(mem)


def test_alloc_and_free_count(mem):
    before = mem.free_pages()
    pa = mem.alloc()
    assert pa % PGSIZE == 0
    assert mem.free_pages() == before - 1
    assert mem.read(pa, PGSIZE) == bytes(PGSIZE)
    mem.free(pa)
    assert mem.free_pages() == before


def test_alloc_exhaustion():
    small = PhysicalMemory(2)
    small.alloc()
    small.alloc()
    with pytest.raises(OutOfMemory):
        small.alloc()


def test_free_misaligned_panics(mem):
    pa = mem.alloc()
    with pytest.raises(KernelPanic):
        mem.free(pa + 1)


def test_word_round_trip(mem):
    pa = mem.alloc()
    mem.write_word(pa + 8, 0x1122334455667788)
    assert mem.read_word(pa + 8) == 0x1122334455667788


def test_map_and_walkaddr(pt, mem):
    page = mem.alloc()
    pt.map_pages(3 * PGSIZE, PGSIZE, page, USER)
    assert pt.walkaddr(3 * PGSIZE) == page
    assert pt.walkaddr(4 * PGSIZE) is None


def test_walkaddr_requires_user_bit(pt, mem):
    page = mem.alloc()
    pt.map_pages(0, PGSIZE, page, PTE_R | PTE_W)
    assert pt.walkaddr(0) is None


def test_remap_panics(pt, mem):
    page = mem.alloc()
    pt.map_pages(0, PGSIZE, page, USER)
    with pytest.raises(KernelPanic, match="remap"):
        pt.map_pages(0, PGSIZE, page, USER)


def test_zero_size_map_panics(pt):
    with pytest.raises(KernelPanic, match="size"):
        pt.map_pages(0, 0, 0, USER)


def test_walk_beyond_maxva(pt):
    with pytest.raises(KernelPanic):
        pt.walk(MAXVA, False)
    assert pt.walkaddr(MAXVA) is None


def test_walk_without_alloc_returns_none(pt):
    assert pt.walk(PGSIZE * 1000, False) is None


def test_copy_round_trip_across_pages(pt):
    assert pt.grow(0, 3 * PGSIZE) == 3 * PGSIZE
    data = bytes(range(256)) * 20
    pt.copyout(PGSIZE - 100, data)
    assert pt.copyin(PGSIZE - 100, len(data)) == data


def test_copyin_unmapped_raises(pt):
    with pytest.raises(BadAddress):
        pt.copyin(0, 10)
    with pytest.raises(BadAddress):
        pt.copyout(0xFFFFFFFFFFFFFFFF, b"x")


def test_copyinstr(pt):
    pt.grow(0, 2 * PGSIZE)
    pt.copyout(PGSIZE - 3, b"hello\0")
    assert pt.copyinstr(PGSIZE - 3, 128) == b"hello"


def test_copyinstr_limit(pt):
    pt.grow(0, PGSIZE)
    pt.copyout(0, b"x" * 128 + b"\0")
    with pytest.raises(BadAddress):
        pt.copyinstr(0, 128)
    assert pt.copyinstr(0, 129) == b"x" * 128


def test_copyinstr_crossing_last_page(pt):
    pt.grow(0, PGSIZE)
    pt.copyout(PGSIZE - 1, b"x")
    with pytest.raises(BadAddress):
        pt.copyinstr(PGSIZE - 1, 128)


def test_grow_smaller_returns_old(pt):
    assert pt.grow(2 * PGSIZE, PGSIZE) == 2 * PGSIZE


def test_shrink_unmaps(pt):
    pt.grow(0, 3 * PGSIZE)
    assert pt.shrink(3 * PGSIZE, PGSIZE) == PGSIZE
    assert pt.walkaddr(0) is not None
    assert pt.walkaddr(PGSIZE) is None
    assert pt.shrink(PGSIZE, 2 * PGSIZE) == PGSIZE


def test_regrown_page_is_zero(pt):
    pt.grow(0, 2 * PGSIZE)
    pt.copyout(PGSIZE, b"\x63")
    pt.shrink(2 * PGSIZE, PGSIZE)
    pt.grow(PGSIZE, 2 * PGSIZE)
    assert pt.copyin(PGSIZE, 1) == b"\0"


def test_free_returns_all_pages(mem):
    before = mem.free_pages()
    pt = PageTable.create(mem)
    pt.grow(0, 5 * PGSIZE)
    pt.free(5 * PGSIZE)
    assert mem.free_pages() == before


def test_free_walk_with_leaf_panics(pt):
    pt.grow(0, PGSIZE)
    with pytest.raises(KernelPanic, match="leaf"):
        pt.free_walk()


def test_grow_out_of_memory_cleans_up():
    small = PhysicalMemory(8)
    pt = PageTable.create(small)
    with pytest.raises(OutOfMemory):
        pt.grow(0, 20 * PGSIZE)
    assert pt.walkaddr(0) is None


def test_copy_to(mem, pt):
    pt.grow(0, 2 * PGSIZE)
    pt.copyout(10, b"parent data")
    child = PageTable.create(mem)
    pt.copy_to(child, 2 * PGSIZE)
    assert child.copyin(10, 11) == b"parent data"
    assert child.walkaddr(0) != pt.walkaddr(0)
    child.copyout(10, b"child")
    assert pt.copyin(10, 6) == b"parent"


def test_copy_to_preserves_flags(mem, pt):
    page = mem.alloc()
    pt.map_pages(0, PGSIZE, page, PTE_R | PTE_U)
    child = PageTable.create(mem)
    pt.copy_to(child, PGSIZE)
    assert pte_flags(mem.read_word(child.walk(0, False))) == pte_flags(
        mem.read_word(pt.walk(0, False))
    )


def test_copy_to_out_of_memory():
    small = PhysicalMemory(12)
    pt = PageTable.create(small)
    pt.grow(0, 4 * PGSIZE)
    child = PageTable.create(small)
    with pytest.raises(OutOfMemory):
        pt.copy_to(child, 4 * PGSIZE)
    assert child.walkaddr(0) is None


def test_copy_to_missing_page_panics(mem, pt):
    child = PageTable.create(mem)
    with pytest.raises(KernelPanic):
        pt.copy_to(child, PGSIZE)


def test_clear_user(pt):
    pt.grow(0, 2 * PGSIZE)
    pt.clear_user(0)
    assert pt.walkaddr(0) is None
    with pytest.raises(BadAddress):
        pt.copyout(0, b"x")
    pt.copyout(PGSIZE, b"ok")
    assert pt.copyin(PGSIZE, 2) == b"ok"


def test_clear_user_unmapped_panics(pt):
    with pytest.raises(KernelPanic, match="uvmclear"):
        pt.clear_user(0)


def test_init_user(pt):
    pt.init_user(b"\x13\x00\x00\x00")
    assert pt.copyin(0, 4) == b"\x13\x00\x00\x00"
    assert pt.copyin(4, 4) == bytes(4)


def test_init_user_too_big(pt):
    with pytest.raises(KernelPanic):
        pt.init_user(bytes(PGSIZE))


def test_unmap_errors(pt):
    with pytest.raises(KernelPanic, match="not aligned"):
        pt.unmap(1, 1, False)
    with pytest.raises(KernelPanic):
        pt.unmap(0, 1, False)


def test_unmap_without_free_keeps_frame(mem, pt):
    page = mem.alloc()
    pt.map_pages(0, PGSIZE, page, USER)
    before = mem.free_pages()
    pt.unmap(0, 1, False)
    assert mem.free_pages() == before
    assert pt.walkaddr(0) is None