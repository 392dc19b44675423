"""notetree: folders and notes with cascading trash and an optimistic cache."""

from .cascade import CascadeEngine, descendant_closure
from .client import HttpNodeStoreClient, LocalNodeStoreClient, NodeStoreClient
from .errors import (
    ErrorKind,
    InvalidTransitionError,
    NodeNotFoundError,
    NoteTreeError,
    PartialCascadeFailureError,
    TransientStoreError,
    UnauthorizedError,
)
from .lifecycle import CacheState, LifecycleManager, OperationError, OperationResult
from .models import Folder, Leaf, Node, node_from_record
from .service import NodeService
from .storage import NodeStore
from .tree import TreeNode, build_trash_tree, build_tree

__all__ = [
    "CacheState",
    "CascadeEngine",
    "ErrorKind",
    "Folder",
    "HttpNodeStoreClient",
    "InvalidTransitionError",
    "Leaf",
    "LifecycleManager",
    "LocalNodeStoreClient",
    "Node",
    "NodeNotFoundError",
    "NodeService",
    "NodeStore",
    "NodeStoreClient",
    "NoteTreeError",
    "OperationError",
    "OperationResult",
    "PartialCascadeFailureError",
    "TransientStoreError",
    "TreeNode",
    "UnauthorizedError",
    "build_trash_tree",
    "build_tree",
    "descendant_closure",
    "node_from_record",
]
