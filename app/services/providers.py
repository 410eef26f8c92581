"""
Provider client contract and registry
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Optional


class ProviderClient(ABC):
    """
    One third-party provider.

    ``enabled()`` reflects configuration and credentials; ``fetch()`` maps the
    provider's raw payload into this project's normalized records.
    """

    key: str = ""

    @abstractmethod
    def enabled(self) -> bool:
        ...

    @abstractmethod
    def fetch(self, query, options=None) -> List[Any]:
        ...


class ProviderRegistry:
    """Provider clients looked up by key"""

    def __init__(self, clients=None):
        self._clients: Dict[str, ProviderClient] = {}
        for client in clients or []:
            self.register(client)

    def register(self, client: ProviderClient, key: Optional[str] = None) -> ProviderClient:
        self._clients[key or client.key] = client
        return client

    def get(self, key: str) -> Optional[ProviderClient]:
        return self._clients.get(key)

    def keys(self) -> List[str]:
        return list(self._clients)

    def enabled(self) -> List[ProviderClient]:
        return [c for c in self._clients.values() if c.enabled()]

    def __contains__(self, key) -> bool:
        return key in self._clients

    def __iter__(self) -> Iterator[ProviderClient]:
        return iter(self._clients.values())

    def __len__(self) -> int:
        return len(self._clients)
