"""
One-shot maintenance: check a saved conversation snapshot and optionally
prune it.

Loads the JSON snapshot, reports every structural problem validate_tree
would log, prints tree statistics, and with --prune N rewrites the file
keeping at most N nodes (current path and branch endpoints always survive).

Usage:
    cd backend
    python scripts/check_snapshot.py path/to/tree.json [--prune 500]
"""

import argparse
import sys
from pathlib import Path

from convtree import ConversationTreeManager, SnapshotFormatError, diagnose_tree


def check(path: Path, prune: int | None) -> int:
    try:
        manager = ConversationTreeManager.import_tree(path.read_text(encoding="utf-8"))
    except SnapshotFormatError as e:
        print(f"Cannot read snapshot: {e}")
        return 1

    tree = manager.get_tree()
    print(f"Tree {tree.id}: {tree.metadata.title or '(untitled)'}")

    violations = diagnose_tree(tree)
    if violations:
        print(f"Found {len(violations)} problem(s):")
        for v in violations:
            where = f" (branch {v.branch_id})" if v.branch_id else ""
            print(f"  [{v.kind}] {v.message}{where}")
    else:
        print("Structure OK.")

    stats = manager.get_statistics()
    print(
        f"  nodes={stats.total_nodes} branches={stats.total_branches}"
        f" user={stats.user_messages} assistant={stats.assistant_messages}"
        f" edited={stats.edited_messages} max_depth={stats.max_depth}"
        f" avg_branch_length={stats.avg_branch_length:.1f}"
    )

    if prune is not None:
        if violations:
            print("Not pruning a tree with structural problems.")
            return 1
        removed = manager.prune_old_nodes(prune)
        if not removed:
            print(f"Nothing to prune (tree has <= {prune} nodes).")
            return 0
        path.write_text(manager.export_tree(), encoding="utf-8")
        print(f"Pruned {len(removed)} node(s); wrote {path}")

    return 1 if violations else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check a conversation tree snapshot.")
    parser.add_argument("snapshot", type=Path)
    parser.add_argument("--prune", type=int, default=None, metavar="N")
    args = parser.parse_args()

    if not args.snapshot.exists():
        print(f"Snapshot not found at {args.snapshot}")
        sys.exit(1)
    sys.exit(check(args.snapshot, args.prune))
