"""
db/ - Database Layer
====================
Statement building, connection pooling and the executor interface to the
storage engine. This layer is the lowest in the architecture and has no
dependencies on other layers.
"""
