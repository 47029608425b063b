from __future__ import annotations

import threading
from contextlib import contextmanager


class KeyedLocks:
    """
    Блокировки по ключу (телефон клиента) внутри процесса.
    Запись живёт, пока её кто-то держит или ждёт, потом удаляется.
    Между процессами консистентность держит version_id_col в модели Customer.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, holders]

    @contextmanager
    def hold(self, key: str):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
