#!/usr/bin/env python3
"""
Snapshot utility.

    vecstore inspect PATH             print header information
    vecstore verify PATH              exit 0 if the snapshot loads cleanly
    vecstore search PATH -q TEXT      query a snapshot with the configured embedding provider
"""

import argparse
import sys
from typing import List, Optional

from .core import config
from .core.errors import CorruptDataError, ProviderError, VectorStoreError
from .vector import codec
from .vector.store import VectorStore


def cmd_inspect(args) -> int:
    index = codec.load_from_file(args.path)
    snapshot = index.snapshot()
    print(f"Snapshot: {args.path}")
    print(f"  metric:    {snapshot.metric.value}")
    print(f"  dimension: {snapshot.dimension}")
    print(f"  records:   {len(snapshot.records)}")
    for record in snapshot.records[:args.limit]:
        preview = record.content[:60] + "..." if len(record.content) > 60 else record.content
        print(f"  - {record.id}: {preview}")
    if len(snapshot.records) > args.limit:
        print(f"  ... {len(snapshot.records) - args.limit} more")
    return 0


def cmd_verify(args) -> int:
    try:
        index = codec.load_from_file(args.path)
    except CorruptDataError as e:
        print(f"ERROR: {args.path} is corrupt: {e}")
        return 1
    print(f"✓ {args.path} OK ({len(index)} records)")
    return 0


def cmd_search(args) -> int:
    issues = config.validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        return 1

    with VectorStore.from_snapshot(config.get_embedding_provider(), args.path,
                                   default_top_k=config.DEFAULT_TOP_K,
                                   embedding_timeout=config.EMBED_TIMEOUT_SEC) as store:
        try:
            results = store.similarity_search(args.query, k=args.k, threshold=args.threshold)
        except ProviderError as e:
            print(f"ERROR: embedding provider failed: {e}")
            return 2

    if not results:
        print("No results.")
    for rank, result in enumerate(results, start=1):
        print(f"{rank}. [{result.score:.4f}] {result.id}: {result.content[:80]}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vecstore", description="Inspect and query vector store snapshots")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="Print snapshot header and first records")
    inspect_parser.add_argument("path")
    inspect_parser.add_argument("--limit", type=int, default=5, help="Records to list")
    inspect_parser.set_defaults(func=cmd_inspect)

    verify_parser = subparsers.add_parser("verify", help="Check that a snapshot loads cleanly")
    verify_parser.add_argument("path")
    verify_parser.set_defaults(func=cmd_verify)

    search_parser = subparsers.add_parser("search", help="Similarity search against a snapshot")
    search_parser.add_argument("path")
    search_parser.add_argument("-q", "--query", required=True)
    search_parser.add_argument("-k", type=int, default=None, help="Maximum results")
    search_parser.add_argument("--threshold", type=float, default=None, help="Minimum score, inclusive")
    search_parser.set_defaults(func=cmd_search)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return args.func(args)
    except FileNotFoundError:
        print(f"ERROR: snapshot not found: {args.path}")
        return 1
    except VectorStoreError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
