"""Network registry - immutable lookup of configured networks."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Iterator

from testnet_faucet.errors import UnknownNetwork
from testnet_faucet.models.config import NetworkDescriptor


class NetworkRegistry:
    """Configured networks, keyed by exact identifier. No default network."""

    def __init__(self, networks: Iterable[NetworkDescriptor]) -> None:
        self._by_id = MappingProxyType({n.id: n for n in networks})

    def get(self, network_id: str) -> NetworkDescriptor:
        try:
            return self._by_id[network_id]
        except KeyError:
            raise UnknownNetwork(network_id) from None

    def __contains__(self, network_id: object) -> bool:
        return network_id in self._by_id

    def __iter__(self) -> Iterator[NetworkDescriptor]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)
