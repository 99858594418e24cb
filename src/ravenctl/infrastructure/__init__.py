"""Infrastructure layer — index database, resolver, vault walker, filesystem.

This layer depends on stdlib, SQLAlchemy, and the domain layer's parsed
document types. It must never import from services, commands, or output.
"""
