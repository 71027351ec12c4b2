"""Storage tiers of the gallery.

Modules
-------
primary
    Managed database accessed through async SQLAlchemy.
mirror
    Local SQLite mirror of generations with an ``is_shared`` flag.
file_store
    JSON list used as the last-resort tier.
"""
