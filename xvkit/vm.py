"""Simulated physical memory and three-level Sv39 user page tables."""

from __future__ import annotations

import struct

from xvkit.riscv import (
    MAXVA,
    PGSIZE,
    PTE_R,
    PTE_U,
    PTE_V,
    PTE_W,
    PTE_X,
    pa2pte,
    pgrounddown,
    pgroundup,
    pte2pa,
    pte_flags,
    px,
)

_WORD = struct.Struct("<Q")
_PTES_PER_PAGE = PGSIZE // _WORD.size


class KernelPanic(Exception):
    """An unrecoverable inconsistency was detected."""


class OutOfMemory(Exception):
    """No physical page was available."""


class BadAddress(Exception):
    """A user virtual address is not mapped for user access."""


class PhysicalMemory:
    """A range of page-sized physical frames with a free list."""

    def __init__(self, npages: int, base: int = 0x80000000) -> None:
        if base % PGSIZE:
            raise ValueError("base must be page aligned")
        self.base = base
        self.end = base + npages * PGSIZE
        self._data = bytearray(npages * PGSIZE)
        self._free: list[int] = list(range(base, self.end, PGSIZE))

    def _offset(self, pa: int, n: int) -> int:
        if pa < self.base or pa + n > self.end:
            raise ValueError(f"physical address {pa:#x} out of range")
        return pa - self.base

    def alloc(self) -> int:
        """Take a free page, zero it and return its physical address."""
        if not self._free:
            raise OutOfMemory("out of physical pages")
        pa = self._free.pop()
        off = self._offset(pa, PGSIZE)
        self._data[off:off + PGSIZE] = bytes(PGSIZE)
        return pa

    def free(self, pa: int) -> None:
        """Return a page to the free list, filling it with junk."""
        if pa % PGSIZE or pa < self.base or pa >= self.end:
            raise KernelPanic("kfree")
        off = pa - self.base
        self._data[off:off + PGSIZE] = b"\x01" * PGSIZE
        self._free.append(pa)

    def read(self, pa: int, n: int) -> bytes:
        off = self._offset(pa, n)
        return bytes(self._data[off:off + n])

    def write(self, pa: int, data: bytes) -> None:
        off = self._offset(pa, len(data))
        self._data[off:off + len(data)] = data

    def read_word(self, pa: int) -> int:
        off = self._offset(pa, _WORD.size)
        return _WORD.unpack_from(self._data, off)[0]

    def write_word(self, pa: int, value: int) -> None:
        off = self._offset(pa, _WORD.size)
        _WORD.pack_into(self._data, off, value)

    def free_pages(self) -> int:
        """Number of pages currently on the free list."""
        return len(self._free)


class PageTable:
    """A user page table rooted at a physical page of a PhysicalMemory."""

    def __init__(self, mem: PhysicalMemory, root: int) -> None:
        self.mem = mem
        self.root = root

    @classmethod
    def create(cls, mem: PhysicalMemory) -> "PageTable":
        """Allocate an empty page table."""
        return cls(mem, mem.alloc())

    def walk(self, va: int, alloc: bool = False) -> int | None:
        """Return the physical address of the leaf PTE for va.

        Missing interior tables are created when alloc is true; otherwise,
        or if memory runs out, None is returned.
        """
        if va >= MAXVA:
            raise KernelPanic("walk")
        table = self.root
        for level in (2, 1):
            pte_addr = table + _WORD.size * px(level, va)
            pte = self.mem.read_word(pte_addr)
            if pte & PTE_V:
                table = pte2pa(pte)
            else:
                if not alloc:
                    return None
                try:
                    table = self.mem.alloc()
                except OutOfMemory:
                    return None
                self.mem.write_word(pte_addr, pa2pte(table) | PTE_V)
        return table + _WORD.size * px(0, va)

    def walkaddr(self, va: int) -> int | None:
        """Physical address of a user page, or None if not user-mapped."""
        if va >= MAXVA:
            return None
        pte_addr = self.walk(va)
        if pte_addr is None:
            return None
        pte = self.mem.read_word(pte_addr)
        if not pte & PTE_V or not pte & PTE_U:
            return None
        return pte2pa(pte)

    def map_pages(self, va: int, size: int, pa: int, perm: int) -> None:
        """Map [va, va+size) to physical memory starting at pa."""
        if size == 0:
            raise KernelPanic("mappages: size")
        a = pgrounddown(va)
        last = pgrounddown(va + size - 1)
        while True:
            pte_addr = self.walk(a, True)
            if pte_addr is None:
                raise OutOfMemory("no page for page-table page")
            if self.mem.read_word(pte_addr) & PTE_V:
                raise KernelPanic("mappages: remap")
            self.mem.write_word(pte_addr, pa2pte(pa) | perm | PTE_V)
            if a == last:
                break
            a += PGSIZE
            pa += PGSIZE

    def unmap(self, va: int, npages: int, do_free: bool) -> None:
        """Remove npages existing mappings from va, optionally freeing frames."""
        if va % PGSIZE:
            raise KernelPanic("uvmunmap: not aligned")
        for a in range(va, va + npages * PGSIZE, PGSIZE):
            pte_addr = self.walk(a)
            if pte_addr is None:
                raise KernelPanic("uvmunmap: walk")
            pte = self.mem.read_word(pte_addr)
            if not pte & PTE_V:
                raise KernelPanic("uvmunmap: not mapped")
            if pte_flags(pte) == PTE_V:
                raise KernelPanic("uvmunmap: not a leaf")
            if do_free:
                self.mem.free(pte2pa(pte))
            self.mem.write_word(pte_addr, 0)

    def init_user(self, src: bytes) -> None:
        """Load initial code, smaller than a page, at virtual address 0."""
        if len(src) >= PGSIZE:
            raise KernelPanic("inituvm: more than a page")
        page = self.mem.alloc()
        self.map_pages(0, PGSIZE, page, PTE_W | PTE_R | PTE_X | PTE_U)
        self.mem.write(page, bytes(src))

    def grow(self, oldsz: int, newsz: int) -> int:
        """Allocate zeroed user pages to grow from oldsz to newsz."""
        if newsz < oldsz:
            return oldsz
        oldsz = pgroundup(oldsz)
        for a in range(oldsz, newsz, PGSIZE):
            try:
                page = self.mem.alloc()
            except OutOfMemory:
                self.shrink(a, oldsz)
                raise
            try:
                self.map_pages(a, PGSIZE, page, PTE_W | PTE_X | PTE_R | PTE_U)
            except OutOfMemory:
                self.mem.free(page)
                self.shrink(a, oldsz)
                raise
        return newsz

    def shrink(self, oldsz: int, newsz: int) -> int:
        """Free user pages to bring the size from oldsz down to newsz."""
        if newsz >= oldsz:
            return oldsz
        if pgroundup(newsz) < pgroundup(oldsz):
            npages = (pgroundup(oldsz) - pgroundup(newsz)) // PGSIZE
            self.unmap(pgroundup(newsz), npages, True)
        return newsz

    def free_walk(self) -> None:
        """Free all page-table pages; every leaf must already be unmapped."""
        table = self.mem.read(self.root, PGSIZE)
        for i, (pte,) in enumerate(_WORD.iter_unpack(table)):
            if pte & PTE_V and not pte & (PTE_R | PTE_W | PTE_X):
                PageTable(self.mem, pte2pa(pte)).free_walk()
                self.mem.write_word(self.root + _WORD.size * i, 0)
            elif pte & PTE_V:
                raise KernelPanic("freewalk: leaf")
        self.mem.free(self.root)

    def free(self, sz: int) -> None:
        """Free user memory of size sz, then the page table itself."""
        if sz > 0:
            self.unmap(0, pgroundup(sz) // PGSIZE, True)
        self.free_walk()

    def copy_to(self, other: "PageTable", sz: int) -> None:
        """Copy the first sz bytes of user memory, pages and flags, into other."""
        va = 0
        try:
            for va in range(0, sz, PGSIZE):
                pte_addr = self.walk(va)
                if pte_addr is None:
                    raise KernelPanic("uvmcopy: pte should exist")
                pte = self.mem.read_word(pte_addr)
                if not pte & PTE_V:
                    raise KernelPanic("uvmcopy: page not present")
                page = other.mem.alloc()
                other.mem.write(page, self.mem.read(pte2pa(pte), PGSIZE))
                try:
                    other.map_pages(va, PGSIZE, page, pte_flags(pte))
                except OutOfMemory:
                    other.mem.free(page)
                    raise
        except OutOfMemory:
            other.unmap(0, va // PGSIZE, True)
            raise

    def clear_user(self, va: int) -> None:
        """Revoke user access to the page at va."""
        pte_addr = self.walk(va)
        if pte_addr is None:
            raise KernelPanic("uvmclear")
        self.mem.write_word(pte_addr, self.mem.read_word(pte_addr) & ~PTE_U)

    def _user_page(self, va0: int, va: int) -> int:
        pa0 = self.walkaddr(va0)
        if pa0 is None:
            raise BadAddress(f"bad user address {va:#x}")
        return pa0

    def copyout(self, dstva: int, data: bytes) -> None:
        """Copy bytes into user memory at dstva."""
        data = bytes(data)
        done = 0
        while done < len(data):
            va0 = pgrounddown(dstva)
            pa0 = self._user_page(va0, dstva)
            n = min(PGSIZE - (dstva - va0), len(data) - done)
            self.mem.write(pa0 + (dstva - va0), data[done:done + n])
            done += n
            dstva = va0 + PGSIZE

    def copyin(self, srcva: int, length: int) -> bytes:
        """Copy length bytes out of user memory at srcva."""
        chunks = []
        while length > 0:
            va0 = pgrounddown(srcva)
            pa0 = self._user_page(va0, srcva)
            n = min(PGSIZE - (srcva - va0), length)
            chunks.append(self.mem.read(pa0 + (srcva - va0), n))
            length -= n
            srcva = va0 + PGSIZE
        return b"".join(chunks)

    def copyinstr(self, srcva: int, max: int) -> bytes:
        """Copy a NUL-terminated string of at most max bytes from user memory.

        The terminating NUL is not included in the result.
        """
        chunks = []
        while max > 0:
            va0 = pgrounddown(srcva)
            pa0 = self._user_page(va0, srcva)
            n = min(PGSIZE - (srcva - va0), max)
            chunk = self.mem.read(pa0 + (srcva - va0), n)
            nul = chunk.find(b"\0")
            if nul >= 0:
                chunks.append(chunk[:nul])
                return b"".join(chunks)
            chunks.append(chunk)
            max -= n
            srcva = va0 + PGSIZE
        raise BadAddress("string not terminated within limit")