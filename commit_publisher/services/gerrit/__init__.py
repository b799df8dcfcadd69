# Gerrit services - SSH command client
from .client import DEFAULT_GERRIT_PORT, GerritClient, GerritConnection

__all__ = ["DEFAULT_GERRIT_PORT", "GerritClient", "GerritConnection"]
