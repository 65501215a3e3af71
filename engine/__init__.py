"""Store access for the cat adoption lottery (cats, applicants, applications)."""

__all__ = [
    "db",
]
