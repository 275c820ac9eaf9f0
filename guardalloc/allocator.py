"""Guarded allocator that detects leaks, buffer overruns and can inject failures."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from guardalloc.config import UnityConfig

_END = b"END\0"


class MemoryFailure(AssertionError):
    """A test failure reported by the allocator."""


class LeakDetected(MemoryFailure):
    """Allocations were still outstanding when the test ended."""


class BufferOverrun(MemoryFailure):
    """The guard in front of or the marker behind a block was overwritten."""


class Block:
    """A handle to allocated memory, indexed by byte offset from its start.

    Offsets may be negative or reach past the requested size, as a raw pointer
    would; only the bounds of the underlying storage are enforced.
    """

    __slots__ = ("_arena", "_offset")

    def __init__(self, arena: bytearray, offset: int) -> None:
        self._arena = arena
        self._offset = offset

    def _locate(self, index: int) -> int:
        if not isinstance(index, int):
            raise TypeError("block offsets must be integers")
        pos = self._offset + index
        if not 0 <= pos < len(self._arena):
            raise IndexError(f"offset {index} lies outside the backing storage")
        return pos

    def __getitem__(self, index: int) -> int:
        return self._arena[self._locate(index)]

    def __setitem__(self, index: int, value: int) -> None:
        if not -128 <= value <= 255:
            raise ValueError(f"byte value out of range: {value}")
        self._arena[self._locate(index)] = value & 0xFF

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Block):
            return NotImplemented
        return self._arena is other._arena and self._offset == other._offset

    def __hash__(self) -> int:
        return hash((id(self._arena), self._offset))

    def __repr__(self) -> str:
        return f"Block(offset={self._offset})"

    def read(self, length: int) -> bytes:
        """Return ``length`` bytes from the start of the block."""
        if length < 0:
            raise ValueError("length must not be negative")
        end = self._offset + length
        if end > len(self._arena):
            raise IndexError("read runs past the backing storage")
        return bytes(self._arena[self._offset:end])

    def write(self, data: bytes) -> None:
        """Copy ``data`` to the start of the block."""
        data = bytes(data)
        end = self._offset + len(data)
        if end > len(self._arena):
            raise IndexError("write runs past the backing storage")
        self._arena[self._offset:end] = data

    def read_string(self) -> str:
        """Read a NUL-terminated string from the start of the block."""
        nul = self._arena.find(0, self._offset)
        if nul < 0:
            raise ValueError("no terminating NUL byte")
        return self._arena[self._offset:nul].decode("latin-1")


class GuardedAllocator:
    """Tracks allocations for one test at a time.

    Each block is preceded by a guard (its size and a zeroed word) and followed
    by an ``END`` marker; both are checked on ``free`` and ``realloc``. With a
    ``heap_size`` the allocator hands out memory from a fixed array: blocks
    come from its end only and are reclaimed only when freed in LIFO order.
    Allocation failure is reported by returning ``None``, like ``malloc``.
    """

    def __init__(self, heap_size: Optional[int] = None, config: Optional[UnityConfig] = None) -> None:
        self._config = config if config is not None else UnityConfig()
        if heap_size is None and self._config.exclude_stdlib_malloc:
            heap_size = self._config.internal_heap_size_bytes
        if heap_size is not None and heap_size <= 0:
            raise ValueError("heap_size must be positive")
        self._heap: Optional[bytearray] = bytearray(heap_size) if heap_size is not None else None
        self._heap_index = 0
        self._word = self._config.pointer_width // 8
        self._guard_size = 2 * self._word
        self._alignment = self._config.malloc_alignment()
        self._count = 0
        self._countdown: Optional[int] = None

    def outstanding(self) -> int:
        """Number of blocks allocated and not yet released."""
        return self._count

    def start_test(self) -> None:
        self._count = 0
        self._countdown = None

    def end_test(self) -> None:
        """Stop failure injection and fail if any block is still allocated."""
        self._countdown = None
        if self._count != 0:
            raise LeakDetected("This test leaks!")

    def fail_after(self, countdown: int) -> None:
        """Let ``countdown`` more allocations succeed, then fail; negative disables."""
        self._countdown = countdown if countdown >= 0 else None

    @contextmanager
    def session(self) -> Iterator["GuardedAllocator"]:
        """Run one test: start tracking, and check for leaks on normal exit."""
        self.start_test()
        try:
            yield self
        except BaseException:
            self._countdown = None
            raise
        self.end_test()

    def _round_up(self, size: int) -> int:
        a = self._alignment
        return -(-size // a) * a

    def _read_guard(self, mem: Block) -> tuple[int, int]:
        start = mem._offset - self._guard_size
        raw = mem._arena[start:mem._offset]
        size = int.from_bytes(raw[:self._word], "little")
        guard_space = int.from_bytes(raw[self._word:], "little")
        return size, guard_space

    def _is_overrun(self, mem: Block) -> bool:
        size, guard_space = self._read_guard(mem)
        if guard_space != 0:
            return True
        start = mem._offset + size
        return mem._arena[start:start + len(_END)] != _END

    def _release(self, mem: Block) -> None:
        self._count -= 1
        if self._heap is not None:
            size, _ = self._read_guard(mem)
            block_size = self._round_up(size + len(_END))
            if mem._offset == self._heap_index - block_size:
                self._heap_index -= self._guard_size + block_size

    def malloc(self, size: int) -> Optional[Block]:
        """Allocate ``size`` bytes, or return ``None`` on failure or zero size."""
        if size < 0:
            raise ValueError("size must not be negative")
        if size >= 1 << (8 * self._word):
            raise ValueError("size does not fit the configured pointer width")
        total = self._guard_size + self._round_up(size + len(_END))

        if self._countdown is not None:
            if self._countdown == 0:
                return None
            self._countdown -= 1

        if size == 0:
            return None
        if self._heap is not None:
            if self._heap_index + total > len(self._heap):
                return None
            arena = self._heap
            offset = self._heap_index + self._guard_size
            self._heap_index += total
        else:
            arena = bytearray(total)
            offset = self._guard_size

        self._count += 1
        start = offset - self._guard_size
        arena[start:start + self._word] = size.to_bytes(self._word, "little")
        arena[start + self._word:offset] = bytes(self._word)
        arena[offset + size:offset + size + len(_END)] = _END
        return Block(arena, offset)

    def calloc(self, num: int, size: int) -> Optional[Block]:
        """Allocate ``num * size`` zeroed bytes."""
        total = num * size
        mem = self.malloc(total)
        if mem is None:
            return None
        mem.write(bytes(total))
        return mem

    def realloc(self, mem: Optional[Block], size: int) -> Optional[Block]:
        """Resize a block; the original stays allocated if growing fails."""
        if mem is None:
            return self.malloc(size)

        if self._is_overrun(mem):
            self._release(mem)
            raise BufferOverrun("Buffer overrun detected during realloc()")

        if size == 0:
            self._release(mem)
            return None

        old_size, _ = self._read_guard(mem)
        if old_size >= size:
            return mem

        if self._heap is not None:
            old_total = self._round_up(old_size + len(_END))
            data_start = self._heap_index - old_total
            if (
                mem._offset == data_start
                and data_start + self._round_up(size + len(_END)) <= len(self._heap)
            ):
                self._release(mem)
                return self.malloc(size)

        new = self.malloc(size)
        if new is None:
            return None
        new.write(mem.read(old_size))
        self._release(mem)
        return new

    def free(self, mem: Optional[Block]) -> None:
        """Release a block, failing if its guards were overwritten."""
        if mem is None:
            return
        overrun = self._is_overrun(mem)
        self._release(mem)
        if overrun:
            raise BufferOverrun("Buffer overrun detected during free()")