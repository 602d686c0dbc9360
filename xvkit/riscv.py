"""Sv39 paging arithmetic, architectural bit masks and system-wide limits."""

# System-wide limits.
NPROC = 64  # maximum number of processes
NCPU = 8  # maximum number of CPUs
NOFILE = 16  # open files per process
NFILE = 100  # open files per system
NINODE = 50  # maximum number of active i-nodes
NDEV = 10  # maximum major device number
ROOTDEV = 1  # device number of file system root disk
MAXARG = 32  # max exec arguments
MAXOPBLOCKS = 10  # max # of blocks any FS op writes
LOGSIZE = MAXOPBLOCKS * 3  # max data blocks in on-disk log
NBUF = MAXOPBLOCKS * 3  # size of disk block cache
FSSIZE = 1000  # size of file system in blocks
MAXPATH = 128  # maximum file path name

# Machine status register.
MSTATUS_MPP_MASK = 3 << 11
MSTATUS_MPP_M = 3 << 11
MSTATUS_MPP_S = 1 << 11
MSTATUS_MPP_U = 0 << 11
MSTATUS_MIE = 1 << 3

# Supervisor status register.
SSTATUS_SPP = 1 << 8
SSTATUS_SPIE = 1 << 5
SSTATUS_UPIE = 1 << 4
SSTATUS_SIE = 1 << 1
SSTATUS_UIE = 1 << 0

# Supervisor interrupt enable.
SIE_SEIE = 1 << 9
SIE_STIE = 1 << 5
SIE_SSIE = 1 << 1

# Machine-mode interrupt enable.
MIE_MEIE = 1 << 11
MIE_MTIE = 1 << 7
MIE_MSIE = 1 << 3

SATP_SV39 = 8 << 60

PGSIZE = 4096  # bytes per page
PGSHIFT = 12  # bits of offset within a page

PTE_V = 1 << 0  # valid
PTE_R = 1 << 1
PTE_W = 1 << 2
PTE_X = 1 << 3
PTE_U = 1 << 4  # user can access

PXMASK = 0x1FF  # 9 bits

# One beyond the highest usable virtual address; one bit less than Sv39
# allows, so addresses never need sign extension.
MAXVA = 1 << (9 + 9 + 9 + 12 - 1)

_MASK64 = (1 << 64) - 1


def pgroundup(sz: int) -> int:
    """Round a size up to a whole number of pages."""
    return (sz + PGSIZE - 1) & ~(PGSIZE - 1)


def pgrounddown(a: int) -> int:
    """Round an address down to the start of its page."""
    return a & ~(PGSIZE - 1)


def pa2pte(pa: int) -> int:
    """Shift a physical address into the PPN field of a PTE."""
    return ((pa >> 12) << 10) & _MASK64


def pte2pa(pte: int) -> int:
    """Extract the physical address a PTE refers to."""
    return ((pte >> 10) << 12) & _MASK64


def pte_flags(pte: int) -> int:
    """Return the low ten flag bits of a PTE."""
    return pte & 0x3FF


def pxshift(level: int) -> int:
    """Bit position of the page-table index for the given level."""
    return PGSHIFT + 9 * level


def px(level: int, va: int) -> int:
    """Extract the 9-bit page-table index for a level from a virtual address."""
    return (va >> pxshift(level)) & PXMASK


def make_satp(pagetable: int) -> int:
    """Build the satp value selecting Sv39 with the given root page table."""
    return SATP_SV39 | (pagetable >> 12)