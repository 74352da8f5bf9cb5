"""
Per-key serialization helpers.

Booking creation is serialized per tractor, booking transitions per booking
and balance mutations per wallet. Within one process that is done with
re-entrant locks handed out by ``KeyedLocks``; across processes the services
additionally re-read the rows they mutate with ``SELECT ... FOR UPDATE``.
Callers that need several keys must acquire them in the order
tractor -> booking -> wallet.
"""
import threading
from contextlib import contextmanager


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """Registry of re-entrant locks that only holds keys currently in use.

    An entry counts the callers holding or waiting on its lock and is dropped
    when the last of them leaves, so the registry never outgrows the number
    of keys in flight.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries = {}

    def __len__(self):
        with self._guard:
            return len(self._entries)

    def _checkout(self, key):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key, entry):
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, namespace, ident):
        key = (namespace, str(ident))
        entry = self._checkout(key)
        try:
            with entry.lock:
                yield
        finally:
            self._checkin(key, entry)

    def tractor(self, tractor_id):
        return self.hold("tractor", tractor_id)

    def booking(self, booking_id):
        return self.hold("booking", booking_id)

    def wallet(self, user_id):
        return self.hold("wallet", user_id)


@contextmanager
def atomic(session):
    """Commit the session when the block succeeds, roll back on any error."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
