import argparse
import asyncio
import logging
import sys
import uuid
from dataclasses import replace
from pathlib import Path
from typing import List

from config.config import ConfigError, SystemConfig, load_config
from integrated_reaction_system import IntegratedReactionSystem
from primitives.field import to_bytes32
from reactions.elgamal import decrypt_counts, encrypt_reaction
from reactions.events import FeedCreatedEvent, MemberJoinedEvent, MessagePostedEvent
from reactions.models import NewReactionPayload, ValidatedReactionTransaction
from storage.database import create_database_engine, create_schema
from utils.utils import create_performance_report, get_system_info, setup_logging
from zk.verifier import DEV_MODE_VERSION, PROOF_SIZE

logger = logging.getLogger(__name__)

EMOJI_NAMES = ["thumbs_up", "heart", "laugh", "wow", "sad", "angry"]


def _member_nullifier(system: IntegratedReactionSystem, address: str,
                      message_id: uuid.UUID) -> bytes:
    """Stand-in for the circuit nullifier: Poseidon(member scalar, message scalar)"""
    member = int.from_bytes(system.commitments.derive_commitment_from_address(address), 'big')
    message = int.from_bytes(message_id.bytes_le, 'big')
    return to_bytes32(system.poseidon.hash([member, message]))


async def run_demo(config: SystemConfig, members: int, votes: List[int]) -> bool:
    print("=" * 80)
    print("ANONYMOUS REACTIONS - DEV MODE DEMONSTRATION")
    print("   Poseidon Merkle membership + ElGamal tallies on BabyJubJub")
    print("=" * 80)

    # Proofs cannot be produced without the circuit, so the demo verifier accepts all
    config = replace(config, zk_config=replace(config.zk_config, dev_mode=True))
    system = IntegratedReactionSystem(config)
    await system.initialize()

    try:
        feed_id = uuid.uuid4()
        message_id = uuid.uuid4()
        addresses = [f"demo-member-{i:03d}-{feed_id.hex[:8]}" for i in range(members)]

        print(f"\nCreating feed {feed_id} with {members} members...")
        await system.publish(FeedCreatedEvent(feed_id, tuple(addresses), block_height=1))
        for block, address in enumerate(addresses, start=2):
            await system.publish(MemberJoinedEvent(feed_id, address, key_generation=0,
                                                   block_height=block))

        roots = await system.membership.get_recent_roots(feed_id, 1)
        print(f"  Membership root: {roots[0].merkle_root.hex()[:32]}...")

        await system.publish(MessagePostedEvent(feed_id, message_id, author_commitment=0))
        feed_pk = await system.feed_info.get_feed_public_key(feed_id)

        print(f"\nCasting {len(votes)} anonymous reactions...")
        block_height = len(addresses) + 2
        for i, emoji in enumerate(votes):
            address = addresses[i % len(addresses)]
            vote = encrypt_reaction(system.curve, feed_pk, emoji, randomness=1000 + 7 * i)
            payload = NewReactionPayload.from_vote(
                feed_id=feed_id,
                message_id=message_id,
                nullifier=_member_nullifier(system, address, message_id),
                vote=vote,
                zk_proof=bytes(PROOF_SIZE),
                circuit_version=DEV_MODE_VERSION,
            )

            admission = await system.admit_reaction(payload)
            if not admission.accepted:
                print(f"  Reaction from member {i} rejected: {admission.message}")
                continue

            processed = await system.index_reaction(ValidatedReactionTransaction(
                transaction_id=str(uuid.uuid4()),
                block_height=block_height,
                payload=payload,
                sender_address=address,
            ))
            block_height += 1
            kind = "update" if processed.is_update else "new"
            print(f"  {address[:16]}... -> {EMOJI_NAMES[emoji]} ({kind}, "
                  f"total={processed.total_count}, version={processed.version})")

        tallies = await system.queries.get_tallies(feed_id, [message_id])
        tally = tallies[message_id]
        secret = system.feed_info.feed_secret_scalar(feed_id)
        counts = decrypt_counts(system.curve, secret, tally.tally, bound=len(votes))

        print("\n" + "=" * 40)
        print("DECRYPTED TALLY")
        print("=" * 40)
        for name, count in zip(EMOJI_NAMES, counts):
            print(f"  {name:>10}: {count}")
        print(f"\nDistinct voters: {tally.total_count}")
        print(f"Tally version:   {tally.version}")

        print()
        print(create_performance_report(system.monitor))
        return True

    except Exception as e:
        logger.error(f"Demo failed: {e}", exc_info=True)
        print(f"\n Demo failed: {e}")
        return False
    finally:
        system.shutdown()


def init_db(config: SystemConfig) -> bool:
    engine = create_database_engine(config.storage_config)
    try:
        create_schema(engine)
    finally:
        engine.dispose()
    print(f"Database ready: {config.storage_config.database_url}")
    return True


def show_config(config: SystemConfig) -> bool:
    zk = config.zk_config
    print("ZK proofs:")
    print(f"  current version:     {zk.current_version}")
    print(f"  supported versions:  {', '.join(zk.supported_versions)}")
    print(f"  deprecated versions: {', '.join(zk.deprecated_versions) or '-'}")
    print(f"  vulnerable versions: {', '.join(zk.vulnerable_versions) or '-'}")
    print(f"  circuits dir:        {zk.circuits_dir}")
    print(f"  dev mode:            {zk.dev_mode}")
    print("Membership:")
    print(f"  tree depth:          {config.membership_config.tree_depth}")
    print(f"  root grace period:   {config.membership_config.root_grace_period}")
    print("Storage:")
    print(f"  database url:        {config.storage_config.database_url}")
    print(f"  worker threads:      {config.storage_config.worker_threads}")
    print("Processor:")
    print(f"  max retries:         {config.processor_config.max_retries}")
    print(f"  retry backoff:       {config.processor_config.retry_backoff_ms}ms")
    print("System:")
    for key, value in get_system_info().items():
        print(f"  {key + ':':<20} {value}")
    return True


def main():
    parser = argparse.ArgumentParser(
        description='Anonymous Reactions Node Tools')
    parser.add_argument('--config', type=str,
                        default='config.yaml', help='Config file path')
    parser.add_argument('--database-url', type=str, default=None,
                        help='Override the configured database URL')

    subparsers = parser.add_subparsers(dest='command', required=True)

    demo_parser = subparsers.add_parser('demo', help='Run a dev-mode reaction scenario')
    demo_parser.add_argument('--members', type=int, default=4,
                             help='Number of feed members')
    demo_parser.add_argument('--votes', type=int, nargs='+', default=[0, 1, 0, 4, 0],
                             help='Emoji index voted by each successive member')

    subparsers.add_parser('init-db', help='Create database tables')
    subparsers.add_parser('show-config', help='Print the effective configuration')

    args = parser.parse_args()

    try:
        config = load_config(Path(args.config))
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.database_url:
        config.storage_config.database_url = args.database_url
    elif args.command == 'demo':
        config.storage_config.database_url = 'sqlite://'

    setup_logging(config.log_level, log_dir=config.log_dir)

    if args.command == 'demo':
        if args.members < 1 or any(not 0 <= v < len(EMOJI_NAMES) for v in args.votes):
            parser.error(f"need at least one member and votes in [0, {len(EMOJI_NAMES)})")
        success = asyncio.run(run_demo(config, args.members, args.votes))
    elif args.command == 'init-db':
        success = init_db(config)
    else:
        success = show_config(config)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
