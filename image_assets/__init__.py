"""
.. include:: ../README.md
"""

__all__ = [
    "publisher",
    "manifest",
    "registry",
    "docker",
    "config",
    "exceptions",
]
