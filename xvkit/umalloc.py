"""First-fit free-list allocator over a growable heap."""

from __future__ import annotations

_HEADER = 16  # bytes per header unit
_MIN_UNITS = 4096
_BASE = -1  # unit address of the empty sentinel block, below every heap block


class Heap:
    """A program break that can grow up to limit bytes."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.brk = 0

    def sbrk(self, n: int) -> int:
        """Move the break by n bytes and return its previous value."""
        old = self.brk
        new = old + n
        if new < 0 or new > self.limit:
            raise MemoryError("sbrk: cannot move break")
        self.brk = new
        return old


class Allocator:
    """Allocate blocks from a Heap using a circular, address-ordered free list.

    Addresses are byte offsets in the heap; each block is preceded by a
    one-unit header holding its size in units.
    """

    def __init__(self, heap: Heap) -> None:
        self.heap = heap
        # unit address -> [next free block, size in units]
        self._blocks: dict[int, list] = {}
        self._freep: int | None = None

    def _morecore(self, nu: int) -> int:
        nu = max(nu, _MIN_UNITS)
        addr = self.heap.sbrk(nu * _HEADER)
        hp = addr // _HEADER
        self._blocks[hp] = [None, nu]
        self.free((hp + 1) * _HEADER)
        return self._freep

    def malloc(self, nbytes: int) -> int:
        """Return the address of a block of at least nbytes bytes.

        Raises MemoryError when the heap cannot grow enough.
        """
        nunits = (nbytes + _HEADER - 1) // _HEADER + 1
        blocks = self._blocks
        if self._freep is None:
            blocks[_BASE] = [_BASE, 0]
            self._freep = _BASE
        prevp = self._freep
        p = blocks[prevp][0]
        while True:
            size = blocks[p][1]
            if size >= nunits:
                if size == nunits:
                    blocks[prevp][0] = blocks[p][0]
                else:
                    blocks[p][1] = size - nunits
                    p += size - nunits
                    blocks[p] = [None, nunits]
                self._freep = prevp
                return (p + 1) * _HEADER
            if p == self._freep:
                p = self._morecore(nunits)
            prevp = p
            p = blocks[p][0]

    def free(self, ap: int) -> None:
        """Return the block at address ap to the free list, merging neighbours."""
        blocks = self._blocks
        bp = ap // _HEADER - 1
        if ap % _HEADER or bp not in blocks or bp == _BASE:
            raise ValueError(f"free: bad pointer {ap:#x}")
        if self._freep is None:
            blocks[_BASE] = [_BASE, 0]
            self._freep = _BASE
        p = self._freep
        while not (p < bp < blocks[p][0]):
            nxt = blocks[p][0]
            if p >= nxt and (bp > p or bp < nxt):
                break
            p = nxt
        nxt = blocks[p][0]
        if bp + blocks[bp][1] == nxt:
            blocks[bp][1] += blocks[nxt][1]
            blocks[bp][0] = blocks[nxt][0]
            del blocks[nxt]
        else:
            blocks[bp][0] = nxt
        if p + blocks[p][1] == bp:
            blocks[p][1] += blocks[bp][1]
            blocks[p][0] = blocks[bp][0]
            del blocks[bp]
        else:
            blocks[p][0] = bp
        self._freep = p