"""Main indexer that coordinates scanning, redaction, embedding and upserts."""

import asyncio
import logging
import os
import stat
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeVar

from watchfiles import Change, awatch

from semindex.config import Config
from semindex.errors import EmbeddingError, InvalidQueryError, SemindexError
from semindex.indexer.chunker import chunk_file, to_uuid
from semindex.indexer.embedding import EmbeddingClient
from semindex.indexer.ignore import IndexIgnore, build_ignore_checker, is_git_ignored
from semindex.indexer.models import GITIGNORED_MARKER, Chunk, IndexStatus, Point
from semindex.indexer.vector_store import VectorStoreClient
from semindex.indexer.walker import walk_project
from semindex.privacy import Redactor

logger = logging.getLogger(__name__)

# Files per progress batch during the initial scan
BATCH_SIZE = 500

# Files indexed concurrently within a batch
FILE_CONCURRENCY = 10

# Chunks embedded concurrently within a file
CHUNK_CONCURRENCY = 10

MAX_QUERY_LENGTH = 1000
DEFAULT_TOP_K = 5

T = TypeVar("T")
R = TypeVar("R")

StatusListener = Callable[[IndexStatus], None]
IgnoreChecker = Callable[[Path], bool]


async def map_parallel(
    items: Sequence[T],
    concurrency: int,
    fn: Callable[[T], Awaitable[R]],
    cancel_event: asyncio.Event | None = None,
) -> list[R | None]:
    """Run ``fn`` over ``items`` with at most ``concurrency`` in flight.

    Results keep the input order. An item whose call raises yields None.
    Once ``cancel_event`` is set, workers stop taking new items.
    """
    results: list[R | None] = [None] * len(items)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(items):
            if cancel_event is not None and cancel_event.is_set():
                return
            i = next_index
            next_index += 1
            try:
                results[i] = await fn(items[i])
            except Exception as e:
                logger.warning("Parallel task failed: %s", e)

    await asyncio.gather(*(worker() for _ in range(min(concurrency, len(items)))))
    return results


@dataclass
class IndexerState:
    """Mutable state owned by one Indexer: status, cancellation and tasks."""

    status: IndexStatus = field(default_factory=IndexStatus.disabled)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    tasks: set[asyncio.Task] = field(default_factory=set)
    listeners: list[StatusListener] = field(default_factory=list)


class Indexer:
    """
    Keeps a vector index of the project's files in sync with the filesystem.

    Lifecycle:
        disabled -> indexing(progress, total) -> complete
        indexing -> disabled on cancellation or a failed startup

    The filesystem is the source of truth. Git-ignored files are redacted
    before they are chunked, and their payloads carry a marker instead of
    the real path. A file's points are always deleted before its new points
    are upserted, so a shrinking file leaves no stale chunks behind.

    Concurrency:
        All work runs on one asyncio event loop. Network calls are the only
        suspension points. Files and chunks are processed by bounded worker
        pools. The status and cancel event are only mutated here.
    """

    def __init__(
        self,
        config: Config,
        embedder: EmbeddingClient | None = None,
        store: VectorStoreClient | None = None,
        redactor: Redactor | None = None,
    ):
        self.config = config
        self.root = config.root
        self.embedder = embedder or EmbeddingClient(config.embedding_url, config.embedding_model)
        self.store = store or VectorStoreClient(
            config.qdrant_url, config.collection_name, api_key=config.qdrant_api_key
        )
        self.redactor = redactor or Redactor(config.root)
        self.state = IndexerState()
        self.index_ignore = IndexIgnore()
        self._dimension: int | None = None

    # Status

    @property
    def status(self) -> IndexStatus:
        return self.state.status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns a function that unregisters it."""
        self.state.listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self.state.listeners:
                self.state.listeners.remove(listener)

        return unsubscribe

    def _publish(self, status: IndexStatus) -> None:
        self.state.status = status
        for listener in list(self.state.listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Status listener failed")

    def _settle_disabled(self) -> None:
        if self.state.status.type != "disabled":
            self._publish(IndexStatus.disabled())

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self.state.tasks.add(task)
        task.add_done_callback(self.state.tasks.discard)
        return task

    def _relative(self, path: Path) -> str | None:
        rel = os.path.relpath(path, self.root)
        if rel.startswith(".."):
            return None
        return Path(rel).as_posix()

    # Lifecycle

    def start(self) -> asyncio.Task | None:
        """Start indexing in the background.

        Returns the background task, or None if indexing is disabled for
        this project. Must be called from a running event loop.
        """
        if not self.config.indexing_enabled:
            logger.info("Indexing disabled for %s", self.root)
            return None
        return self._track(asyncio.create_task(self._run(), name="semindex-indexer"))

    async def _run(self) -> None:
        try:
            await self.check_services()
            await self.run_initial_index()
        except asyncio.CancelledError:
            self._settle_disabled()
            raise
        except Exception as e:
            logger.error("Indexer failed to start: %s", e)
            self._settle_disabled()
            return

        if self.state.status.type == "complete":
            self._track(asyncio.create_task(self.watch(), name="semindex-watch"))

    async def check_services(self) -> None:
        """Probe both services. Raises ServiceUnavailableError on failure."""
        await asyncio.gather(self.store.health(), self.embedder.health())

    async def ensure_collection(self) -> None:
        """Create the collection if missing, sized by a probe embedding."""
        if await self.store.collection_exists():
            return
        if self._dimension is None:
            self._dimension = len(await self.embedder.embed("dim"))
        await self.store.create_collection(self._dimension)

    async def cancel(self) -> None:
        """Cancel the scan and the watch, aborting in-flight requests."""
        self.state.cancel_event.set()
        tasks = [t for t in self.state.tasks if not t.done()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if self.state.status.type == "indexing":
            self._publish(IndexStatus.disabled())

    async def close(self) -> None:
        await self.cancel()
        await self.embedder.aclose()
        await self.store.aclose()

    # Indexing

    async def run_initial_index(self) -> None:
        """Scan every project file once, skipping files whose mtime is unchanged."""
        cancel = self.state.cancel_event
        await self.ensure_collection()

        # index-ignore rules are loaded once; edits need a restart
        self.index_ignore = IndexIgnore.load(self.root)

        # One bulk fetch instead of one query per file. The snapshot may be
        # stale for files modified during the scan; the watch catches those.
        indexed_mtimes: dict[str, float] | None
        try:
            indexed_mtimes = await self.store.all_indexed_mtimes()
        except SemindexError as e:
            logger.warning("Failed to fetch indexed mtimes, falling back to per-file queries: %s", e)
            indexed_mtimes = None

        files = await asyncio.to_thread(
            lambda: list(walk_project(self.root, self.index_ignore.excludes))
        )
        total = len(files)
        self._publish(IndexStatus.indexing(0, total))
        logger.info("Starting initial index of %s (%d files)", self.root, total)

        is_ignored = await build_ignore_checker(self.root, files)
        done = 0

        async def process(path: Path) -> bool:
            # Counts files taken by a worker; cancelled batches stop short
            nonlocal done
            done += 1
            return await self.index_file(
                path,
                skip_if_unchanged=True,
                is_ignored=is_ignored,
                indexed_mtimes=indexed_mtimes,
            )

        for start in range(0, total, BATCH_SIZE):
            if cancel.is_set():
                break
            batch = files[start : start + BATCH_SIZE]
            await map_parallel(batch, FILE_CONCURRENCY, process, cancel)
            self._publish(IndexStatus.indexing(done, total))

        if cancel.is_set():
            logger.info("Initial index cancelled after %d/%d files", done, total)
            self._settle_disabled()
            return

        self._publish(IndexStatus.complete())
        logger.info("Initial index complete: %d files", total)

    async def index_file(
        self,
        path: Path,
        skip_if_unchanged: bool = False,
        is_ignored: IgnoreChecker | None = None,
        indexed_mtimes: dict[str, float] | None = None,
    ) -> bool:
        """
        Index a single file.

        Returns True if points were written. Failures are logged and the
        file is skipped; only cancellation propagates.
        """
        try:
            return await self._index_file(path, skip_if_unchanged, is_ignored, indexed_mtimes)
        except Exception as e:
            logger.warning("Failed to index file %s: %s", path, e)
            return False

    async def _index_file(
        self,
        path: Path,
        skip_if_unchanged: bool,
        is_ignored: IgnoreChecker | None,
        indexed_mtimes: dict[str, float] | None,
    ) -> bool:
        st = path.stat()
        if not stat.S_ISREG(st.st_mode):
            return False
        if st.st_size > self.config.max_file_size:
            logger.debug("Skipping %s: %d bytes exceeds limit", path, st.st_size)
            return False

        source_id = to_uuid(str(path))
        if skip_if_unchanged:
            if indexed_mtimes is not None:
                indexed_mtime = indexed_mtimes.get(source_id)
            else:
                indexed_mtime = await self.store.indexed_mtime(source_id)
            if indexed_mtime == st.st_mtime:
                return False

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except UnicodeDecodeError as e:
            logger.warning("Skipping file with invalid UTF-8 encoding: %s (%s)", path, e)
            return False

        if is_ignored is not None:
            ignored = is_ignored(path)
        else:
            ignored = await is_git_ignored(path, self.root)
        # Redaction and chunking are CPU-bound; keep them off the event loop
        if ignored:
            content = await asyncio.to_thread(self.redactor.fake_content, content, path)

        chunks = await asyncio.to_thread(chunk_file, content, str(path))
        if not chunks:
            return False

        # Redact the path of git-ignored files so directory structure does not leak
        indexed_path = GITIGNORED_MARKER if ignored else str(path)

        async def embed_chunk(chunk: Chunk) -> Point | None:
            try:
                vector = await self.embedder.embed(f"File: {indexed_path}\n\n{chunk.text}")
            except EmbeddingError as e:
                logger.warning("Failed to embed chunk %s:%d: %s", path, chunk.start_line, e)
                return None
            return Point(
                id=chunk.id,
                vector=vector,
                payload={
                    "file_path": indexed_path,
                    "source_id": source_id,
                    "text": chunk.text,
                    "start_line": chunk.start_line,
                    "mtime": st.st_mtime,
                    "is_gitignored": ignored,
                },
            )

        results = await map_parallel(
            chunks, CHUNK_CONCURRENCY, embed_chunk, self.state.cancel_event
        )
        if self.state.cancel_event.is_set():
            return False

        points = [p for p in results if p is not None]
        if not points:
            logger.warning("No chunks embedded for %s, keeping existing points", path)
            return False

        await self.store.delete_by_source(source_id)
        await self.store.upsert(points)
        logger.debug("Indexed %s: %d/%d chunks", path, len(points), len(chunks))
        return True

    async def remove_file(self, path: Path) -> None:
        """Delete all points for a file. Failures are logged."""
        try:
            await self.store.delete_by_source(to_uuid(str(path)))
        except SemindexError as e:
            logger.error("Failed to delete index entry for %s: %s", path, e)

    # Steady state

    async def handle_change(self, change: Change, path: Path) -> None:
        """Apply one file-system event to the index."""
        rel = self._relative(path)
        if rel is None or self.index_ignore.excludes(rel):
            return
        if change == Change.deleted:
            await self.remove_file(path)
        else:
            # The event implies a change, so the mtime check is skipped
            await self.index_file(path)

    async def watch(self, stop_event: asyncio.Event | None = None) -> None:
        """Watch the project root and re-index files as they change.

        Each batch is collapsed to one action per path, decided by whether
        the file exists now, so the order of events within a batch does not
        matter. Paths are handled one at a time. Runs until ``stop_event``
        (by default the cancel event) is set.
        """
        stop_event = stop_event or self.state.cancel_event
        logger.info("Watching %s for changes", self.root)
        try:
            async for changes in awatch(self.root, stop_event=stop_event):
                for path in sorted({Path(raw_path) for _, raw_path in changes}):
                    change = Change.modified if path.exists() else Change.deleted
                    try:
                        await self.handle_change(change, path)
                    except Exception:
                        logger.exception("Failed to handle %s event for %s", change.name, path)
        except Exception:
            logger.exception("File watch on %s stopped", self.root)
        logger.info("Stopped watching %s", self.root)

    # Query

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[str]:
        """
        Search the index for chunks similar to ``query``.

        Returns ``"// {file}:{line}\\n{text}"`` snippets in rank order, or an
        empty list if the initial index has not completed.

        Raises:
            InvalidQueryError: If the query is empty or too long.
            EmbeddingError, VectorStoreError: If a service call fails.
        """
        if not query or len(query) > MAX_QUERY_LENGTH:
            raise InvalidQueryError()
        if self.state.status.type != "complete":
            return []

        vector = await self.embedder.embed(query)
        hits = await self.store.search(vector, top_k)
        return [
            f"// {hit.get('file_path')}:{hit.get('start_line')}\n{hit.get('text', '')}"
            for hit in hits
        ]
