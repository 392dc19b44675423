"""Lifecycle manager: the client's optimistic cache over a node store.

All local state lives in one immutable :class:`CacheState` snapshot owned by
a :class:`LifecycleManager`. Mutations apply their effect locally, call the
store, then keep the new state on success or put the previous snapshot back
on failure. Every public operation returns an :class:`OperationResult`; no
store error escapes the manager.
"""

from __future__ import annotations

import asyncio
import functools
import itertools
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, TypeVar

from .ancestors import AncestorPath, AncestorResolver
from .cascade import (
    descendant_closure,
    mirror_purge,
    mirror_restore,
    mirror_soft_delete,
    pool_children,
)
from .config import get_timeout
from .errors import (
    ErrorKind,
    InvalidTransitionError,
    NoteTreeError,
    PartialCascadeFailureError,
    TransientStoreError,
)
from .models import Leaf
from .tree import TreeNode, build_trash_tree, build_tree, resolve_drop_parent
from .utils import utcnow

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable
    from datetime import datetime

    from .client import NodeStoreClient
    from .models import Node
    from .service import RestoreOutcome
    from .tree import DropPosition

    Apply = Callable[["CacheState"], "CacheState"]
    Commit = Callable[["CacheState", Any], "CacheState"]
    Merge = Callable[["CacheState", Any, frozenset[str]], "CacheState"]
    Reconcile = Callable[[asyncio.Future[Any]], None]

T = TypeVar("T")

logger = logging.getLogger(__name__)

READ_ATTEMPTS = 3


@dataclass(frozen=True)
class CacheState:
    """Everything the client currently knows.

    Attributes:
        active: Known active nodes.
        trash: Known trashed nodes.
        loaded_folders: Folders whose children have been fetched.
        root_loaded: Whether the root listing has been fetched.
        trash_loaded: Whether the trash listing has been fetched.
        current: The node opened for reading or editing, with content.

    """

    active: tuple[Node, ...] = ()
    trash: tuple[Node, ...] = ()
    loaded_folders: frozenset[str] = frozenset()
    root_loaded: bool = False
    trash_loaded: bool = False
    current: Node | None = None

    def find_active(self, node_id: str) -> Node | None:
        """Look a node up among the active nodes."""
        return next((n for n in self.active if n.id == node_id), None)

    def find_trash(self, node_id: str) -> Node | None:
        """Look a node up in the trash."""
        return next((n for n in self.trash if n.id == node_id), None)

    def find(self, node_id: str) -> Node | None:
        """Look a node up in the active set, then in the trash."""
        node = self.find_active(node_id)
        return node if node is not None else self.find_trash(node_id)


@dataclass(frozen=True)
class OperationError:
    """Structured failure handed back to callers.

    ``refetch`` is True when the manager had to re-read part of the tree
    because the store may hold a partially applied cascade.
    """

    kind: ErrorKind
    message: str
    refetch: bool = False


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a lifecycle manager operation."""

    success: bool
    data: Any = None
    error: OperationError | None = None


def _upsert(nodes: tuple[Node, ...], node: Node) -> tuple[Node, ...]:
    if any(n.id == node.id for n in nodes):
        return tuple(node if n.id == node.id else n for n in nodes)
    return (*nodes, node)


def _rewrite(state: CacheState, node_id: str, changes: dict[str, Any]) -> CacheState:
    """Apply ``changes`` to the active copy and the open copy of a node."""
    active = tuple(
        n.model_copy(update=changes) if n.id == node_id else n for n in state.active
    )
    current = state.current
    if current is not None and current.id == node_id:
        current = current.model_copy(update=changes)
    return replace(state, active=active, current=current)


def _commit_node(state: CacheState, node: Node) -> CacheState:
    """Swap in the store's copy of a node wherever the cache holds it."""
    active = state.active
    if state.find_active(node.id) is not None:
        active = _upsert(active, node)
    current = state.current
    if current is not None and current.id == node.id:
        current = node
    return replace(state, active=active, current=current)


def _changed_ids(before: CacheState, after: CacheState) -> set[str]:
    """Ids whose cached copy, set membership or open copy differs."""

    def index(state: CacheState) -> dict[str, tuple[Node, bool]]:
        entries = {n.id: (n, False) for n in state.active}
        entries.update((n.id, (n, True)) for n in state.trash)
        return entries

    old, new = index(before), index(after)
    changed = {i for i in old.keys() | new.keys() if old.get(i) != new.get(i)}
    if before.current != after.current:
        changed.update(n.id for n in (before.current, after.current) if n is not None)
    return changed


def _merge_listing(
    state: CacheState,
    parent_id: str | None,
    nodes: Iterable[Node],
    protected: frozenset[str] = frozenset(),
) -> CacheState:
    """Replace the known children of ``parent_id`` by a fresh listing.

    Cached copies of ``protected`` ids win over the listing.
    """
    fresh = tuple(n for n in nodes if n.id not in protected)
    fresh_ids = {n.id for n in fresh}
    kept = tuple(
        n
        for n in state.active
        if n.id in protected or (n.parent_id != parent_id and n.id not in fresh_ids)
    )
    trash = tuple(n for n in state.trash if n.id not in fresh_ids)
    merged = replace(state, active=kept + fresh, trash=trash)
    if parent_id is None:
        return replace(merged, root_loaded=True)
    return replace(merged, loaded_folders=merged.loaded_folders | {parent_id})


def _merge_trash(
    state: CacheState,
    nodes: Iterable[Node],
    protected: frozenset[str] = frozenset(),
) -> CacheState:
    trash = tuple(n for n in nodes if n.id not in protected)
    trash_ids = {n.id for n in trash}
    active = tuple(n for n in state.active if n.id not in trash_ids)
    kept = tuple(n for n in state.trash if n.id in protected)
    return replace(state, active=active, trash=kept + trash, trash_loaded=True)


def _place(
    state: CacheState,
    node: Node,
    protected: frozenset[str] = frozenset(),
) -> CacheState:
    """Put a freshly fetched node into the matching set."""
    if node.id in protected:
        return state
    if node.is_trashed:
        active = tuple(n for n in state.active if n.id != node.id)
        return replace(state, active=active, trash=_upsert(state.trash, node))
    trash = tuple(n for n in state.trash if n.id != node.id)
    return replace(state, active=_upsert(state.active, node), trash=trash)


class LifecycleManager:
    """Optimistic cache of one owner's tree, reconciled against a store client.

    Local state changes are serialized by a FIFO :class:`asyncio.Lock`, so
    operations apply in the order they were issued. Store calls are bounded
    by ``timeout``. A mutation whose caller is cancelled keeps its request
    running and reconciles when that request completes; later operations
    wait for such reconciliations first.

    Reads do not hold the lock while the store answers. Each finished
    mutation stamps the ids it touched with a new generation, and a read
    whose answer is older than such a stamp asks again before merging, so a
    late listing never undoes a newer local change.
    """

    def __init__(
        self,
        client: NodeStoreClient,
        *,
        timeout: float | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Wrap ``client``.

        Args:
            client: Authoritative store client.
            timeout: Seconds allowed per store call; defaults to configuration.
            clock: Source of optimistic ``deleted_at`` stamps.

        """
        self.client = client
        self.timeout = timeout if timeout is not None else get_timeout()
        self.clock = clock
        self._state = CacheState()
        self._lock = asyncio.Lock()
        self._pending: dict[asyncio.Future[Any], Reconcile] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._generation = 0
        self._stamps: dict[str, int] = {}

    @property
    def state(self) -> CacheState:
        """The current snapshot."""
        return self._state

    def tree(self) -> list[TreeNode]:
        """Display forest of the active nodes."""
        return build_tree(self._state.active, self._state.loaded_folders)

    def trash_tree(self) -> list[TreeNode]:
        """Display forest of the trash."""
        return build_trash_tree(self._state.trash)

    async def wait_idle(self) -> None:
        """Wait until abandoned requests and follow-up re-fetches are settled."""
        async with self._lock:
            await self._drain()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- plumbing ---------------------------------------------------------

    async def _call(self, request: Callable[[], Awaitable[T]]) -> T:
        try:
            async with asyncio.timeout(self.timeout):
                return await request()
        except TimeoutError as e:
            msg = f"Store request timed out after {self.timeout:g}s"
            raise TransientStoreError(msg) from e

    async def _drain(self) -> None:
        """Settle every abandoned request; the lock must be held."""
        while self._pending:
            pending = list(self._pending)
            await asyncio.wait(pending)
            for task in pending:
                self._settle(task)

    def _stamp(self, node_id: str | None, *states: CacheState) -> None:
        """Record that a mutation finished on ``node_id`` and what it changed.

        ``states`` are the successive snapshots the mutation went through.
        """
        touched = {node_id} if node_id is not None else set()
        for before, after in itertools.pairwise(states):
            touched |= _changed_ids(before, after)
        self._generation += 1
        for touched_id in touched:
            self._stamps[touched_id] = self._generation

    def _touched_since(self, generation: int) -> frozenset[str]:
        return frozenset(
            node_id for node_id, stamp in self._stamps.items() if stamp > generation
        )

    def _settle(self, task: asyncio.Future[Any]) -> None:
        reconcile = self._pending.pop(task, None)
        if reconcile is not None:
            reconcile(task)

    def _failure(
        self,
        operation: str,
        node_id: str | None,
        error: NoteTreeError,
        *,
        refetch: bool = False,
    ) -> OperationResult:
        logger.warning(
            "%s failed for %s: %s",
            operation,
            node_id,
            error.message,
            extra={"node_id": node_id, "operation": operation},
        )
        return OperationResult(
            success=False,
            error=OperationError(error.kind, error.message, refetch),
        )

    async def _mutate(
        self,
        operation: str,
        node_id: str | None,
        apply: Apply,
        request: Callable[[], Awaitable[Any]],
        commit: Commit | None = None,
    ) -> OperationResult:
        """Apply locally, call the store, then commit or roll back.

        ``apply`` may raise :class:`NoteTreeError` to refuse the operation
        before any request is made.
        """
        async with self._lock:
            await self._drain()
            snapshot = self._state
            try:
                applied = apply(snapshot)
            except NoteTreeError as e:
                return self._failure(operation, node_id, e)
            self._state = applied

            task = asyncio.ensure_future(self._call(request))
            try:
                data = await asyncio.shield(task)
            except asyncio.CancelledError:
                self._pending[task] = functools.partial(
                    self._reconcile, operation, node_id, snapshot, commit
                )
                task.add_done_callback(self._settle)
                raise
            except PartialCascadeFailureError as e:
                self._state = snapshot
                self._stamp(node_id, snapshot, applied)
                await self._refetch_subtree(node_id, snapshot)
                return self._failure(operation, node_id, e, refetch=True)
            except NoteTreeError as e:
                self._state = snapshot
                self._stamp(node_id, snapshot, applied)
                return self._failure(operation, node_id, e)
            except Exception:
                self._state = snapshot
                self._stamp(node_id, snapshot, applied)
                raise

            if commit is not None:
                self._state = commit(self._state, data)
            self._stamp(node_id, snapshot, applied, self._state)
            return OperationResult(success=True, data=data)

    def _reconcile(
        self,
        operation: str,
        node_id: str | None,
        snapshot: CacheState,
        commit: Commit | None,
        task: asyncio.Future[Any],
    ) -> None:
        """Finish a mutation whose caller went away."""
        applied = self._state
        error = None if task.cancelled() else task.exception()
        if not task.cancelled() and error is None:
            if commit is not None:
                self._state = commit(self._state, task.result())
            self._stamp(node_id, snapshot, applied, self._state)
            logger.info("Abandoned %s on %s committed", operation, node_id)
            return

        self._state = snapshot
        self._stamp(node_id, snapshot, applied)
        logger.warning(
            "Abandoned %s on %s rolled back: %s",
            operation,
            node_id,
            error or "cancelled",
        )
        if isinstance(error, PartialCascadeFailureError):
            refetch = asyncio.create_task(self._refetch_locked(node_id, snapshot))
            self._background.add(refetch)
            refetch.add_done_callback(self._background.discard)

    async def _refetch_locked(self, node_id: str | None, snapshot: CacheState) -> None:
        async with self._lock:
            await self._drain()
            await self._refetch_subtree(node_id, snapshot)

    async def _refetch_subtree(
        self,
        node_id: str | None,
        snapshot: CacheState,
    ) -> None:
        """Re-read what a partially applied cascade may have touched.

        Re-fetches the trash, the target's parent listing and every loaded
        folder inside the subtree known before the operation. The lock must
        be held.
        """
        if node_id is None:
            return
        known = snapshot.active + snapshot.trash
        subtree = {node_id} | {
            n.id for n in descendant_closure(node_id, pool_children(known))
        }
        target = snapshot.find(node_id)
        parent_id = target.parent_id if target is not None else None

        listings: list[str | None] = [
            folder_id for folder_id in snapshot.loaded_folders if folder_id in subtree
        ]
        if parent_id is None or parent_id in snapshot.loaded_folders:
            listings.insert(0, parent_id)

        def list_of(folder_id: str | None) -> Callable[[], Awaitable[list[Node]]]:
            if folder_id is None:
                return self.client.list_root
            return functools.partial(self.client.list_children, folder_id)

        results = await asyncio.gather(
            self._call(self.client.list_trash),
            *(self._call(list_of(folder_id)) for folder_id in listings),
            return_exceptions=True,
        )

        state = self._state
        trash_result, *listing_results = results
        for folder_id, result in zip(listings, listing_results, strict=True):
            if isinstance(result, NoteTreeError):
                logger.warning("Re-fetch of %s failed: %s", folder_id, result)
            elif isinstance(result, BaseException):
                raise result
            else:
                state = _merge_listing(state, folder_id, result)
        if isinstance(trash_result, NoteTreeError):
            logger.warning("Re-fetch of trash failed: %s", trash_result)
        elif isinstance(trash_result, BaseException):
            raise trash_result
        else:
            state = _merge_trash(state, trash_result)
        self._state = state
        logger.info(
            "Re-fetched subtree of %s after a partial cascade",
            node_id,
            extra={"node_id": node_id, "operation": "refetch"},
        )

    async def _read(
        self,
        operation: str,
        node_id: str | None,
        request: Callable[[], Awaitable[Any]],
        merge: Merge,
    ) -> OperationResult:
        """Call the store without the lock, then merge the answer under it.

        An answer that a finished mutation may have outdated is requested
        again; after ``READ_ATTEMPTS`` answers the last one is merged with
        the cached copies of the mutated ids kept as they are.
        """
        attempts = 0
        while True:
            attempts += 1
            issued = self._generation
            try:
                data = await self._call(request)
            except NoteTreeError as e:
                return self._failure(operation, node_id, e)
            async with self._lock:
                await self._drain()
                protected = self._touched_since(issued)
                if not protected or attempts >= READ_ATTEMPTS:
                    self._state = merge(self._state, data, protected)
                    return OperationResult(success=True, data=data)
            logger.debug("Re-reading %s for %s", operation, node_id)

    # -- reads ------------------------------------------------------------

    async def fetch_root(self) -> OperationResult:
        """Load the root level, forgetting loaded folders and the trash."""

        def merge(
            state: CacheState,
            nodes: list[Node],
            protected: frozenset[str],
        ) -> CacheState:
            kept = tuple(n for n in state.active if n.id in protected)
            return CacheState(
                active=kept + tuple(n for n in nodes if n.id not in protected),
                trash=tuple(n for n in state.trash if n.id in protected),
                root_loaded=True,
                current=state.current,
            )

        return await self._read("fetch_root", None, self.client.list_root, merge)

    async def fetch_children(self, parent_id: str) -> OperationResult:
        """Load the children of ``parent_id`` and mark it loaded."""
        return await self._read(
            "fetch_children",
            parent_id,
            functools.partial(self.client.list_children, parent_id),
            lambda state, nodes, protected: _merge_listing(
                state, parent_id, nodes, protected
            ),
        )

    async def fetch_trash(self, *, force: bool = False) -> OperationResult:
        """Load the trash once, or again when ``force`` is set."""
        if self._state.trash_loaded and not force:
            return OperationResult(success=True, data=list(self._state.trash))
        return await self._read(
            "fetch_trash", None, self.client.list_trash, _merge_trash
        )

    async def open(self, node_id: str) -> OperationResult:
        """Fetch a node with its content, make it current and reveal it."""

        def merge(
            state: CacheState,
            node: Node,
            protected: frozenset[str],
        ) -> CacheState:
            if node.id in protected:
                return replace(state, current=state.find(node.id) or node)
            return replace(_place(state, node), current=node)

        opened = await self._read(
            "open",
            node_id,
            functools.partial(self.client.get, node_id),
            merge,
        )
        if not opened.success:
            return opened

        revealed = await self.reveal(node_id)
        if not revealed.success:
            logger.warning("Opened %s but could not reveal it", node_id)
        return OperationResult(success=True, data=self._state.current or opened.data)

    async def reveal(self, node_id: str) -> OperationResult:
        """Load the ancestor chain of ``node_id`` and each ancestor's children.

        Sibling listings of the chain are fetched concurrently. A trashed node
        is resolved inside the trash only; ``data`` is the
        :class:`~notetree.ancestors.AncestorPath`. The walk starts over when
        a mutation finishes while its answers are in flight.
        """
        attempts = 0
        result = None
        while result is None:
            attempts += 1
            result = await self._reveal_once(node_id, last=attempts >= READ_ATTEMPTS)
        return result

    async def _reveal_once(self, node_id: str, *, last: bool) -> OperationResult | None:
        """One reveal pass; None when its answers are outdated and ``last`` is off."""
        issued = self._generation
        node = self._state.find(node_id)
        if node is None:
            try:
                node = await self._call(functools.partial(self.client.get, node_id))
            except NoteTreeError as e:
                return self._failure("reveal", node_id, e)

        if node.is_trashed:
            loaded = await self.fetch_trash()
            if not loaded.success:
                return loaded

        state = self._state
        resolver = AncestorResolver(
            known={n.id: n for n in state.active},
            trash={n.id: n for n in state.trash},
            fetch=lambda ancestor_id: self._call(
                functools.partial(self.client.get, ancestor_id)
            ),
        )
        try:
            path = await resolver.walk(node)
        except NoteTreeError as e:
            return self._failure("reveal", node_id, e)
        if path.trash_fallback:
            return OperationResult(success=True, data=path)

        to_load: list[str | None] = [
            folder_id
            for folder_id in path.folder_ids
            if folder_id not in state.loaded_folders
        ]
        if not state.root_loaded:
            to_load.insert(0, None)
        results = await asyncio.gather(
            *(
                self._call(
                    self.client.list_root
                    if folder_id is None
                    else functools.partial(self.client.list_children, folder_id)
                )
                for folder_id in to_load
            ),
            return_exceptions=True,
        )

        errors: list[NoteTreeError] = []
        async with self._lock:
            await self._drain()
            protected = self._touched_since(issued)
            if protected and not last:
                return None
            new_state = self._state
            for ancestor in path.fetched:
                new_state = _place(new_state, ancestor, protected)
            for folder_id, result in zip(to_load, results, strict=True):
                if isinstance(result, NoteTreeError):
                    errors.append(result)
                elif isinstance(result, BaseException):
                    raise result
                else:
                    new_state = _merge_listing(new_state, folder_id, result, protected)
            self._state = _place(new_state, node, protected)

        if errors:
            failed = self._failure("reveal", node_id, errors[0])
            return replace(failed, data=path)
        return OperationResult(success=True, data=path)

    # -- mutations --------------------------------------------------------

    async def create(
        self,
        name: str,
        parent_id: str | None = None,
        *,
        is_folder: bool = False,
        duplicate_from_id: str | None = None,
    ) -> OperationResult:
        """Create a node; the cache only learns of it once the store answers."""

        def commit(state: CacheState, node: Node) -> CacheState:
            return replace(state, active=_upsert(state.active, node))

        return await self._mutate(
            "create",
            parent_id,
            lambda state: state,
            functools.partial(
                self.client.create,
                name,
                parent_id=parent_id,
                is_folder=is_folder,
                duplicate_from_id=duplicate_from_id,
            ),
            commit,
        )

    async def rename(self, node_id: str, name: str) -> OperationResult:
        """Rename locally at once; the old name comes back on failure."""
        clean_name = name.strip()

        def apply(state: CacheState) -> CacheState:
            if not clean_name:
                msg = "Name must not be empty"
                raise InvalidTransitionError(msg)
            return _rewrite(state, node_id, {"name": clean_name})

        return await self._mutate(
            "rename",
            node_id,
            apply,
            functools.partial(self.client.update, node_id, name=clean_name),
            _commit_node,
        )

    async def update_content(self, node_id: str, content: str) -> OperationResult:
        """Rewrite a note's content locally at once; revert on failure."""

        def apply(state: CacheState) -> CacheState:
            node = state.find(node_id)
            if node is None and state.current is not None:
                node = state.current if state.current.id == node_id else None
            if node is not None and not isinstance(node, Leaf):
                msg = "Folders have no content"
                raise InvalidTransitionError(msg)
            return _rewrite(state, node_id, {"content": content})

        return await self._mutate(
            "update_content",
            node_id,
            apply,
            functools.partial(self.client.update, node_id, content=content),
            _commit_node,
        )

    async def move(self, node_id: str, new_parent_id: str | None) -> OperationResult:
        """Reparent locally at once; the old parent comes back on failure.

        Moves that the cache can already tell are invalid (self-parenting, a
        known non-folder or trashed parent, a parent inside the node's known
        subtree) are refused without calling the store.
        """

        def apply(state: CacheState) -> CacheState:
            if new_parent_id == node_id:
                msg = "Cannot move a note inside itself"
                raise InvalidTransitionError(msg)
            if new_parent_id is not None:
                parent = state.find(new_parent_id)
                if parent is not None and (not parent.is_folder or parent.is_trashed):
                    msg = "Parent folder not found or not a folder"
                    raise InvalidTransitionError(msg)
                below = descendant_closure(node_id, pool_children(state.active))
                if any(n.id == new_parent_id for n in below):
                    msg = "Cannot move a folder into one of its own descendants"
                    raise InvalidTransitionError(msg)
            return _rewrite(state, node_id, {"parent_id": new_parent_id})

        return await self._mutate(
            "move",
            node_id,
            apply,
            functools.partial(self.client.move, node_id, new_parent_id),
            _commit_node,
        )

    async def drop(
        self,
        node_id: str,
        target_id: str,
        position: DropPosition | str,
    ) -> OperationResult:
        """Move ``node_id`` according to a drag and drop on ``target_id``."""
        try:
            parent_id = resolve_drop_parent(self.tree(), target_id, position)
        except NoteTreeError as e:
            return self._failure("drop", node_id, e)
        except ValueError:
            error = InvalidTransitionError(f"Unknown drop position {position!r}")
            return self._failure("drop", node_id, error)
        return await self.move(node_id, parent_id)

    async def soft_delete(self, node_id: str) -> OperationResult:
        """Move a node and its known subtree to the trash at once.

        The store cascades over the full subtree, including children this
        cache never loaded. On failure both sets are put back exactly.
        """

        def apply(state: CacheState) -> CacheState:
            active, trash, moved = mirror_soft_delete(
                state.active, state.trash, node_id, self.clock()
            )
            current = state.current
            for node in moved:
                if current is not None and node.id == current.id:
                    current = node
            return replace(state, active=active, trash=trash, current=current)

        return await self._mutate(
            "soft_delete",
            node_id,
            apply,
            functools.partial(self.client.delete, node_id, permanent=False),
        )

    async def restore(self, node_id: str) -> OperationResult:
        """Bring a trashed node and its known subtree back at once.

        The store checks that the parent is active; a refusal puts the trash
        back exactly as it was.
        """

        def apply(state: CacheState) -> CacheState:
            active, trash, _ = mirror_restore(state.active, state.trash, node_id)
            return replace(state, active=active, trash=trash)

        def commit(state: CacheState, outcome: RestoreOutcome) -> CacheState:
            return _commit_node(
                replace(state, active=_upsert(state.active, outcome.node)),
                outcome.node,
            )

        return await self._mutate(
            "restore",
            node_id,
            apply,
            functools.partial(self.client.restore, node_id),
            commit,
        )

    async def permanent_delete(self, node_id: str) -> OperationResult:
        """Drop a trashed node and its known subtree; re-insert on failure."""

        def apply(state: CacheState) -> CacheState:
            trash, removed = mirror_purge(state.trash, node_id)
            current = state.current
            if current is not None and any(n.id == current.id for n in removed):
                current = None
            return replace(state, trash=trash, current=current)

        return await self._mutate(
            "permanent_delete",
            node_id,
            apply,
            functools.partial(self.client.delete, node_id, permanent=True),
        )

    async def delete(self, node_id: str) -> OperationResult:
        """Two-step delete: an active node goes to trash, a trashed one is purged.

        A node the cache does not know is looked up first to learn its state.
        """
        node = self._state.find(node_id)
        if node is None:
            try:
                node = await self._call(functools.partial(self.client.get, node_id))
            except NoteTreeError as e:
                return self._failure("delete", node_id, e)
        if node.is_trashed:
            return await self.permanent_delete(node_id)
        return await self.soft_delete(node_id)

