"""Governance ledger schema."""
from __future__ import annotations

from collections.abc import Iterable

import sqlalchemy as sa
from alembic import op

revision = "20251018_01"
down_revision = None
branch_labels = None
depends_on: Iterable[str] | None = None


def _drop_enum(name: str) -> None:
    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        op.execute(sa.text(f"DROP TYPE IF EXISTS {name}"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:  # noqa: D401
    """Create contract, registry, proposal, vote, ciphertext and event tables."""

    proposal_type = sa.Enum("BOARD_DECISION", "FINANCIAL", "STRATEGIC", "OPERATIONAL", name="proposal_type")
    fhe_type = sa.Enum("EBOOL", "EUINT8", "EUINT32", name="fhe_type")

    proposal_type.create(op.get_bind(), checkfirst=True)
    fhe_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "contract_state",
        sa.Column("address", sa.String(length=42), primary_key=True),
        sa.Column("owner", sa.String(length=42), nullable=False),
        sa.Column("deployed_at", sa.BigInteger(), nullable=False),
        sa.Column("company_name", sa.String(length=255)),
        sa.Column("total_shares", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("company_initialized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("board_member_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("proposal_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )

    op.create_table(
        "board_members",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contract_address",
            sa.String(length=42),
            sa.ForeignKey("contract_state.address", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("address", sa.String(length=42), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("contract_address", "address", name="uq_board_members_contract_address"),
    )

    op.create_table(
        "shareholders",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contract_address",
            sa.String(length=42),
            sa.ForeignKey("contract_state.address", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("address", sa.String(length=42), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("shares", sa.BigInteger(), nullable=False),
        sa.Column("is_registered", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("contract_address", "address", name="uq_shareholders_contract_address"),
    )
    op.create_index("ix_shareholders_contract_address", "shareholders", ["contract_address"])

    op.create_table(
        "proposals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "contract_address",
            sa.String(length=42),
            sa.ForeignKey("contract_state.address", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("proposal_id", sa.Integer(), nullable=False),
        sa.Column("proposal_type", proposal_type, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("creator", sa.String(length=42), nullable=False),
        sa.Column("created_at_block", sa.BigInteger(), nullable=False),
        sa.Column("deadline", sa.BigInteger(), nullable=False),
        sa.Column("finalized", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("yes_count_handle", sa.String(length=66), nullable=False),
        sa.Column("no_count_handle", sa.String(length=66), nullable=False),
        sa.Column("abstain_count_handle", sa.String(length=66), nullable=False),
        sa.Column("yes_votes", sa.BigInteger()),
        sa.Column("no_votes", sa.BigInteger()),
        sa.Column("abstain_votes", sa.BigInteger()),
        sa.Column("passed", sa.Boolean()),
        *_timestamps(),
        sa.UniqueConstraint("contract_address", "proposal_id", name="uq_proposals_contract_proposal_id"),
    )
    op.create_index("ix_proposals_contract_address", "proposals", ["contract_address"])

    op.create_table(
        "vote_records",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column(
            "proposal_pk",
            sa.String(length=36),
            sa.ForeignKey("proposals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("voter", sa.String(length=42), nullable=False),
        sa.Column("vote_handle", sa.String(length=66), nullable=False),
        sa.Column("has_voted", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("cast_at", sa.BigInteger(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("proposal_pk", "voter", name="uq_vote_records_proposal_voter"),
    )

    op.create_table(
        "ciphertexts",
        sa.Column("handle", sa.String(length=66), primary_key=True),
        sa.Column("fhe_type", fhe_type, nullable=False),
        sa.Column("sealed_value", sa.LargeBinary(), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "ciphertext_grants",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "handle",
            sa.String(length=66),
            sa.ForeignKey("ciphertexts.handle", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("address", sa.String(length=42), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("handle", "address", name="uq_ciphertext_grants_handle_address"),
    )

    op.create_table(
        "ledger_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "contract_address",
            sa.String(length=42),
            sa.ForeignKey("contract_state.address", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("block_timestamp", sa.BigInteger(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_ledger_events_contract_name", "ledger_events", ["contract_address", "name"])


def downgrade() -> None:  # noqa: D401
    """Drop the governance ledger."""

    op.drop_index("ix_ledger_events_contract_name", table_name="ledger_events")
    op.drop_table("ledger_events")
    op.drop_table("ciphertext_grants")
    op.drop_table("ciphertexts")
    op.drop_table("vote_records")
    op.drop_index("ix_proposals_contract_address", table_name="proposals")
    op.drop_table("proposals")
    op.drop_index("ix_shareholders_contract_address", table_name="shareholders")
    op.drop_table("shareholders")
    op.drop_table("board_members")
    op.drop_table("contract_state")

    for enum_name in ["fhe_type", "proposal_type"]:
        _drop_enum(enum_name)
