"""Ledger access: contract port, signer port and deployment registry."""

from healthscore.infrastructure.chain.base import (
    ZERO_HANDLE,
    LedgerError,
    PendingTransaction,
    ScoreContract,
    Signer,
    TransactionReceipt,
)
from healthscore.infrastructure.chain.registry import ContractRegistry

__all__ = [
    "ZERO_HANDLE",
    "LedgerError",
    "PendingTransaction",
    "ScoreContract",
    "Signer",
    "TransactionReceipt",
    "ContractRegistry",
]
