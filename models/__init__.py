"""
models/ - Domain Layer
======================
Plain dataclasses the repositories map result rows onto.
"""
