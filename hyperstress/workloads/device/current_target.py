import threading


class CurrentTarget:
    """
    The path the walker is probing right now, shared with the probe threads
    of the same process.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._path = ""

    def publish(self, path: str):
        with self._lock:
            self._path = path

    def get(self) -> str:
        with self._lock:
            return self._path

    def clear(self):
        self.publish("")
