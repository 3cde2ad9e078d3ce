from .store import InternshipStore

__all__ = ["InternshipStore"]
