# guardalloc

A simulated heap for tests. `GuardedAllocator` hands out guarded blocks of
bytes and catches the usual allocation mistakes:

- **leaks**: blocks still allocated when a test ends (`LeakDetected`),
- **buffer overruns**: a write past the end of a block, or a non-zero write
  into the guard word just before its start, found when the block is freed
  or reallocated (`BufferOverrun`),
- **allocation failures on demand**: `malloc` can be made to fail after a set
  number of successful calls, so out-of-memory paths can be exercised.

`LeakDetected` and `BufferOverrun` both derive from `MemoryFailure`, which is
an `AssertionError`, so a test framework reports them as test failures.

There are two modes. With no heap size every allocation gets its own storage.
With a fixed `heap_size` the allocator behaves like a small embedded heap:
blocks are taken from the end of one array, space comes back only when the
most recently allocated block is freed (LIFO order), and that last block can
grow in place on `realloc` if the array has room.

## Installation

```
pip install guardalloc
```

## Usage

```python
from guardalloc.allocator import GuardedAllocator

heap = GuardedAllocator()

with heap.session():          # start_test() ... end_test()
    block = heap.malloc(10)
    block.write(b"123456789\0")
    bigger = heap.realloc(block, 15)
    assert bigger.read_string() == "123456789"
    heap.free(bigger)
```

`session()` calls `start_test()` on entry and `end_test()` on a normal exit.
A block still allocated at that point raises `LeakDetected("This test leaks!")`:

```python
with heap.session():
    heap.malloc(10)           # never freed -> LeakDetected
```

If the body raises, the exception passes through and no leak check is made.
`outstanding()` returns the number of blocks not yet released.

Writing one byte past the end of a block is reported when the block is freed:

```python
block = heap.malloc(10)
block[10] = 0xFF
heap.free(block)              # raises BufferOverrun
```

The block is released even when the overrun is reported.

Making allocations fail on purpose:

```python
heap.start_test()
heap.fail_after(1)
first = heap.malloc(10)       # succeeds
assert heap.malloc(10) is None
heap.free(first)
heap.end_test()
```

A negative count to `fail_after` turns failure injection off; `start_test()`
and `end_test()` also turn it off.

Other behaviour, as with the C functions of the same names:

- `malloc(0)` returns `None`; a failed allocation returns `None`.
- `calloc(num, size)` returns `num * size` zero-filled bytes.
- `realloc(None, n)` is `malloc(n)`; `realloc(block, 0)` frees the block and
  returns `None`; shrinking or keeping the size returns the same block;
  growing copies the data to a new block, and if that fails returns `None`
  and leaves the original block allocated.
- `free(None)` does nothing.

### Blocks

A `Block` is a handle to allocated memory. `block[i]` reads and
`block[i] = v` writes one byte at offset `i`; offsets may be negative or run
past the requested size, as a raw pointer would, so long as they stay within
the underlying storage. `read(n)`, `write(data)` and `read_string()` (up to
a NUL byte) work from the start of the block. Two handles compare equal when
they point at the same place in the same storage.

### Fixed-size heap

```python
heap = GuardedAllocator(heap_size=256)
```

## Configuration

`guardalloc.config` builds a `UnityConfig` from `#define` lines.
`parse_defines(text)` returns the active definitions (comments and `#undef`
are honoured), and `load_config(text)` turns them into a configuration:

```python
from guardalloc.allocator import GuardedAllocator
from guardalloc.config import load_config

config = load_config("#define UNITY_POINTER_WIDTH 64\n")
heap = GuardedAllocator(config=config)
```

For the allocator, the pointer width sets the size of the guard words and the
alignment of block sizes (`malloc_alignment()`). If
`UNITY_EXCLUDE_STDLIB_MALLOC` is defined and no `heap_size` is given, the
allocator uses a fixed heap of `UNITY_INTERNAL_HEAP_SIZE_BYTES` bytes
(256 by default).

`UnityConfig` also records the other options (integer widths, float and
double support, precisions, type names) with `support_64()`,
`float_enabled()` and `double_enabled()`, and carries output hooks: `emit`
writes text one character at a time to `output_char` or standard output,
and `flush`, `start` and `complete` call their hooks when set. Widths must
be 16, 32 or 64 and precisions positive; otherwise `ConfigError` is raised.

## What this package does not do

It is not a test runner or an assertion library: there is no command, no
test discovery and no result report. It does not track Python's own memory;
it only checks blocks obtained from a `GuardedAllocator`. The allocator
reports problems by raising exceptions and does not itself write through the
configuration's output hooks.