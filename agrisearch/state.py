"""Observable per-session index state."""

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from agrisearch.logging_config import get_logger

logger = get_logger(__name__)


class IndexState(BaseModel):
    """Immutable snapshot of indexing and search activity.

    Attributes:
        total_documents: Records in the user's index.
        is_indexing: An indexing batch is running.
        indexing_progress: Percent of the current batch processed.
        is_searching: At least one search is running.
        error: Message of the last indexing or search failure.
    """

    model_config = ConfigDict(frozen=True)

    total_documents: int = Field(default=0, ge=0, description="Records in the index")
    is_indexing: bool = Field(default=False, description="Indexing in progress")
    indexing_progress: int = Field(default=0, ge=0, le=100, description="Batch progress")
    is_searching: bool = Field(default=False, description="Search in progress")
    error: str | None = Field(default=None, description="Last failure message")


StateListener = Callable[[IndexState], None]


class IndexStateTracker:
    """Holds the current IndexState and notifies subscribers on change.

    Only the indexing pipeline and the search engine write to it. Searches
    may overlap, so ``is_searching`` stays true until the last one ends.
    A new search clears only an error left by an earlier search; indexing
    failures stay visible until the next batch starts.
    """

    def __init__(self) -> None:
        self._state = IndexState()
        self._listeners: list[StateListener] = []
        self._searches_in_flight = 0
        self._search_error = False

    def snapshot(self) -> IndexState:
        """Current state."""
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; it receives the current state immediately.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)
        self._notify_one(listener, self._state)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        """Return to defaults, as at session start."""
        self._searches_in_flight = 0
        self._search_error = False
        self._update(IndexState())

    def _update(self, state: IndexState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            self._notify_one(listener, state)

    def _notify_one(self, listener: StateListener, state: IndexState) -> None:
        try:
            listener(state)
        except Exception:
            logger.exception("Index state listener failed")

    def _replace(self, **changes: object) -> None:
        self._update(self._state.model_copy(update=changes))

    def begin_indexing(self) -> None:
        self._search_error = False
        self._replace(is_indexing=True, indexing_progress=0, error=None)

    def set_progress(self, processed: int, total: int) -> None:
        """Record progress as a rounded percentage."""
        progress = round(100 * processed / total) if total else 100
        self._replace(indexing_progress=min(progress, 100))

    def finish_indexing(self) -> None:
        self._replace(is_indexing=False)

    def begin_search(self) -> None:
        self._searches_in_flight += 1
        if self._search_error:
            self._search_error = False
            self._replace(is_searching=True, error=None)
        else:
            self._replace(is_searching=True)

    def finish_search(self) -> None:
        self._searches_in_flight = max(self._searches_in_flight - 1, 0)
        self._replace(is_searching=self._searches_in_flight > 0)

    def set_total_documents(self, total: int) -> None:
        self._replace(total_documents=total)

    def set_error(self, message: str | None) -> None:
        self._search_error = False
        self._replace(error=message)

    def set_search_error(self, message: str) -> None:
        self._search_error = True
        self._replace(error=message)
