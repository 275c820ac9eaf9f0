"""Simulated guarded heap for tests: leak and overrun detection, failure injection, and configuration."""

__version__ = "0.1.0"
__all__ = ["allocator", "config"]