"""
repositories/ - Data Access Layer
==================================
Each repository owns the statement shapes for one table.
Repositories build statements, run them on pooled connections and
return domain model objects.
"""
