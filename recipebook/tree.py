import logging
from typing import Dict, List, Sequence

from .schemas import RecipeVersion, VersionTreeNode


logger = logging.getLogger(__name__)


def build_version_tree(versions: Sequence[RecipeVersion]) -> List[VersionTreeNode]:
    """Rebuild the fork forest of one lineage from parent pointers.

    `versions` should be oldest first; roots and each node's children keep
    the input order. A version whose parent is not in `versions` becomes a
    root so it stays visible.
    """
    nodes: Dict[str, VersionTreeNode] = {}
    for version in versions:
        nodes[version.id] = VersionTreeNode(version=version)

    roots: List[VersionTreeNode] = []
    for version in versions:
        node = nodes[version.id]
        parent_id = version.parent_version_id
        if parent_id is None:
            roots.append(node)
        elif parent_id in nodes:
            nodes[parent_id].children.append(node)
        else:
            logger.info("version %s: parent %s not in lineage list", version.id, parent_id)
            roots.append(node)

    # assign depths top-down; anything not reached is part of a parent cycle
    seen = set()
    stack = [(node, 0) for node in reversed(roots)]
    while stack:
        node, depth = stack.pop()
        if node.version.id in seen:
            continue
        seen.add(node.version.id)
        node.depth = depth
        for child in reversed(node.children):
            stack.append((child, depth + 1))

    if len(seen) != len(nodes):
        logger.warning(
            "dropped %d version(s) with cyclic parent links", len(nodes) - len(seen)
        )
    return roots
