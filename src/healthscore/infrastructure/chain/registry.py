"""Resolve the deployed contract address for a chain."""

from collections.abc import Mapping

from healthscore.config import DEFAULT_CHAIN_ALIASES, ZERO_ADDRESS, Settings


class ContractRegistry:
    """Lookup table of contract deployments keyed by chain id.

    An alias maps a chain id reported by a wallet to the id the deployment
    is recorded under. Missing entries and the zero address both mean the
    contract is not deployed on that chain.
    """

    def __init__(
        self,
        deployments: Mapping[int | str, str],
        aliases: Mapping[int, int] | None = None,
    ) -> None:
        self._deployments = {int(k): v for k, v in deployments.items()}
        self._aliases = dict(DEFAULT_CHAIN_ALIASES if aliases is None else aliases)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ContractRegistry":
        return cls(settings.deployments)

    def canonical_chain_id(self, chain_id: int) -> int:
        return self._aliases.get(chain_id, chain_id)

    def resolve(self, chain_id: int | None) -> str | None:
        if not chain_id:
            return None
        address = self._deployments.get(self.canonical_chain_id(chain_id))
        if not address or address.lower() == ZERO_ADDRESS:
            return None
        return address
