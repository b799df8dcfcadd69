"""
Repository coordinates resolved from a VCS root URL.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Repository:
    """Owner and name of a repository on a hosting service."""

    owner: str
    name: str
    url: str
