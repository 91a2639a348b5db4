"""State/store layer.

This package is the single owner of per-device presence state: the
device state machine, the store that drives the timeout sweep, and the
context assembler built on top of it.
"""
