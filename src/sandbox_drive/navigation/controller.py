"""Breadcrumb navigation confined to a sandbox root.

The gateway has no "list ancestors" call, so the path from the sandbox root to
the current folder is kept here as an explicit stack. The root itself is never
on the stack; it sits implicitly at index -1.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sandbox_drive.gateway.errors import DriveError, SandboxViolation
from sandbox_drive.gateway.models import FolderStackEntry, RemoteEntry

if TYPE_CHECKING:
    from sandbox_drive.gateway.client import GatewayClient

logger = logging.getLogger(__name__)

ROOT_INDEX = -1
DEFAULT_ROOT_LABEL = "Home"


@dataclass(frozen=True)
class ListingState:
    """What is currently displayed: the entries of one folder, or an error."""

    folder_id: str
    entries: tuple[RemoteEntry, ...] = ()
    error: DriveError | None = None
    loaded: bool = False

    @property
    def ok(self) -> bool:
        return self.loaded and self.error is None

    @property
    def folders(self) -> list[RemoteEntry]:
        return [e for e in self.entries if e.is_folder]

    @property
    def files(self) -> list[RemoteEntry]:
        return [e for e in self.entries if not e.is_folder]


class NavigationController:
    """Maintains the current location as a root id plus a breadcrumb stack.

    Every transition refetches the listing. Each fetch takes a new generation
    number; a response is applied only if no newer fetch has started since,
    so the most recent navigation always determines what is displayed.
    """

    def __init__(
        self,
        gateway: GatewayClient,
        root_id: str,
        root_label: str = DEFAULT_ROOT_LABEL,
    ) -> None:
        """Initialise the controller at the sandbox root.

        No listing is fetched until the first operation (usually ``refresh``).

        Args:
            gateway: Client used to fetch listings.
            root_id: Sandbox root folder id for the acting identity.
            root_label: Breadcrumb label shown for the root.
        """
        if not root_id:
            raise ValueError("root_id must not be empty")
        self._gateway = gateway
        self._root_id = root_id
        self._root_label = root_label
        self._stack: list[FolderStackEntry] = []
        self._current_folder_id = root_id
        self._listing = ListingState(folder_id=root_id)
        self._generation = 0
        self._stale_dropped = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def root_id(self) -> str:
        return self._root_id

    @property
    def current_folder_id(self) -> str:
        return self._current_folder_id

    @property
    def stack(self) -> tuple[FolderStackEntry, ...]:
        return tuple(self._stack)

    @property
    def listing(self) -> ListingState:
        return self._listing

    @property
    def stale_responses_dropped(self) -> int:
        return self._stale_dropped

    @property
    def at_root(self) -> bool:
        return not self._stack

    @property
    def breadcrumbs(self) -> list[tuple[int, str]]:
        """(index, label) pairs from the root down, ready for ``jump_to``."""
        crumbs = [(ROOT_INDEX, self._root_label)]
        crumbs.extend((index, entry.name) for index, entry in enumerate(self._stack))
        return crumbs

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def enter(self, folder: RemoteEntry | FolderStackEntry) -> ListingState:
        """Descend into a child folder of the current location.

        Raises:
            ValueError: If ``folder`` is a file entry. Nothing changes.
        """
        if isinstance(folder, RemoteEntry):
            if not folder.is_folder:
                raise ValueError(f"'{folder.name}' is not a folder")
            folder = FolderStackEntry(id=folder.id, name=folder.name)

        self._stack.append(folder)
        self._sync_current()
        logger.info("[enter] descended; folder_id:%s;depth:%d", folder.id, len(self._stack))
        return await self._fetch()

    async def up(self) -> ListingState:
        """Ascend one level. At the sandbox root this does nothing at all."""
        if not self._stack:
            return self._listing

        self._stack.pop()
        self._sync_current()
        return await self._fetch()

    async def jump_to(self, index: int) -> ListingState:
        """Jump to a breadcrumb.

        Args:
            index: -1 for the sandbox root, otherwise a position in ``stack``.

        Raises:
            SandboxViolation: If ``index`` points above the sandbox root.
            IndexError: If ``index`` is past the end of the stack.
        """
        if index < ROOT_INDEX:
            raise SandboxViolation(f"Breadcrumb index {index} is above the sandbox root")
        if index >= len(self._stack):
            raise IndexError(f"Breadcrumb index {index} out of range (depth {len(self._stack)})")

        del self._stack[index + 1 :]
        self._sync_current()
        return await self._fetch()

    async def refresh(self) -> ListingState:
        """Refetch the current folder without touching the stack."""
        return await self._fetch()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _sync_current(self) -> None:
        self._current_folder_id = self._stack[-1].id if self._stack else self._root_id

    async def _fetch(self) -> ListingState:
        """Load the listing of the current folder.

        On failure the stack is left as the triggering operation set it, the
        listing becomes an error state and the error is re-raised. Results of
        superseded fetches are discarded.
        """
        self._generation += 1
        generation = self._generation
        folder_id = self._current_folder_id

        try:
            entries = await self._gateway.list_folder(folder_id)
        except DriveError as exc:
            if generation != self._generation:
                self._drop_stale(folder_id, generation)
                return self._listing
            logger.warning("[_fetch] listing failed; folder_id:%s;error:%s", folder_id, exc.message)
            self._listing = ListingState(folder_id=folder_id, error=exc, loaded=True)
            raise

        if generation != self._generation:
            self._drop_stale(folder_id, generation)
            return self._listing

        self._listing = ListingState(folder_id=folder_id, entries=tuple(entries), loaded=True)
        return self._listing

    def _drop_stale(self, folder_id: str, generation: int) -> None:
        self._stale_dropped += 1
        logger.info(
            "[_fetch] discarded superseded listing; folder_id:%s;generation:%d;current:%d",
            folder_id,
            generation,
            self._generation,
        )
