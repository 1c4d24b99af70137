import threading
from collections import defaultdict
from contextlib import ExitStack, contextmanager


class RoomLocks:
    """Re-entrant lock per room code.

    `hold` takes several codes at once in sorted order so two connections
    moving between the same pair of rooms cannot deadlock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = defaultdict(threading.RLock)

    def _lock_for(self, code):
        with self._guard:
            return self._locks[code]

    @contextmanager
    def hold(self, *codes):
        with ExitStack() as stack:
            for code in sorted({c for c in codes if c}):
                stack.enter_context(self._lock_for(code))
            yield
