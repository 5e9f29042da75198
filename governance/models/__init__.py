"""Ledger models package."""
from .base import Base, TimestampMixin
from .board_member import BoardMember
from .ciphertext import Ciphertext, CiphertextGrant, FheType
from .contract import ContractState
from .event import LedgerEvent
from .proposal import Proposal, ProposalState, ProposalType
from .shareholder import Shareholder
from .vote import VoteChoice, VoteRecord

__all__ = [
    "Base",
    "BoardMember",
    "Ciphertext",
    "CiphertextGrant",
    "ContractState",
    "FheType",
    "LedgerEvent",
    "Proposal",
    "ProposalState",
    "ProposalType",
    "Shareholder",
    "TimestampMixin",
    "VoteChoice",
    "VoteRecord",
]
