"""Concurrency building blocks: QSBR, epoch reclamation, ring buffers, reference counting, thread pools, work stealing and a tiny netcat."""

__version__ = "0.1.0"