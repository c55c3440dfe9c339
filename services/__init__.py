"""
services/ - Application Layer
=============================
Wires the pool and repositories together for the entry point.
"""
