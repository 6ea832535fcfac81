"""Cooperative user-level threads: a round-robin scheduler, its ready queue and a demo."""

__version__ = "0.1.0"
__all__ = ["scheduler", "thread_queue", "demo"]