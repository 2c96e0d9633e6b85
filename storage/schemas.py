from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    String,
    Table,
    UniqueConstraint,
)

from .database import metadata

# ------------------------
# Member Commitments
# ------------------------
# one row per (feed, commitment); the autoincrement id is the registration order,
# which is also the Merkle leaf order
feed_member_commitments = Table(
    "feed_member_commitments", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("feed_id", String(36), nullable=False, index=True),
    Column("commitment", LargeBinary(32), nullable=False),
    Column("registered_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("feed_id", "commitment", name="uq_feed_commitment"),
)

# ------------------------
# Merkle Root History
# ------------------------
# append-only; the highest id is the most recent root
merkle_root_history = Table(
    "merkle_root_history", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("feed_id", String(36), nullable=False, index=True),
    Column("merkle_root", LargeBinary(32), nullable=False),
    Column("block_height", BigInteger, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# ------------------------
# Message Reaction Tallies
# ------------------------
# six (C1, C2) slots packed as 6 x 64-byte points per column
message_reaction_tallies = Table(
    "message_reaction_tallies", metadata,
    Column("message_id", String(36), primary_key=True),
    Column("feed_id", String(36), nullable=False, index=True),
    Column("tally_c1", LargeBinary(384), nullable=False),
    Column("tally_c2", LargeBinary(384), nullable=False),
    Column("total_count", Integer, nullable=False, default=0),
    Column("version", BigInteger, nullable=False, default=0),
    Column("last_updated", DateTime(timezone=True), nullable=False),
)

# ------------------------
# Reaction Nullifiers
# ------------------------
# the individual vote is kept so an update can be subtracted from the tally
reaction_nullifiers = Table(
    "reaction_nullifiers", metadata,
    Column("nullifier", LargeBinary(32), primary_key=True),
    Column("message_id", String(36), nullable=False, index=True),
    Column("vote_c1", LargeBinary(384), nullable=False),
    Column("vote_c2", LargeBinary(384), nullable=False),
    Column("encrypted_emoji_backup", LargeBinary, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# ------------------------
# Reaction Transactions
# ------------------------
# audit and replay trail, one row per processed reaction transaction
reaction_transactions = Table(
    "reaction_transactions", metadata,
    Column("id", String(64), primary_key=True),
    Column("block_height", BigInteger, nullable=False, index=True),
    Column("feed_id", String(36), nullable=False),
    Column("message_id", String(36), nullable=False, index=True),
    Column("nullifier", LargeBinary(32), nullable=False),
    Column("ciphertext_c1", LargeBinary(384), nullable=False),
    Column("ciphertext_c2", LargeBinary(384), nullable=False),
    Column("zk_proof", LargeBinary, nullable=False),
    Column("circuit_version", String(64), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

# ------------------------
# Member Commitment Status
# ------------------------
# lifecycle of a member's commitment; revocation is recorded, the leaf is never removed
member_commitment_status = Table(
    "member_commitment_status", metadata,
    Column("feed_id", String(36), primary_key=True),
    Column("member_address", String(256), primary_key=True),
    Column("commitment", LargeBinary(32), nullable=False),
    Column("key_generation", Integer, nullable=False, default=0),
    Column("registered_at_block", BigInteger, nullable=False),
    Column("revoked_at_block", BigInteger, nullable=True),
)
