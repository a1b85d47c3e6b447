import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Tuple

from hyperstress.deadline import DeadlineGuard
from hyperstress.env import Env
from hyperstress.logging import Logger
from hyperstress.logging.hyperstress_logging_models import ProbeDebug
from hyperstress.metrics import MetricView
from hyperstress.visited import VisitedCache
from hyperstress.workloads.workload import Workload, _always

from .current_target import CurrentTarget
from .device_probe import DeviceProbe
from .dispatch_table import DispatchTable
from .traversal import BoundedTraversal, is_special_file


class DeviceProbeWorkload(Workload):
    """
    Walks a device tree and probes every special file found.

    One ``run`` is one full walk. While the walker probes a file, a small
    pool of threads keeps re-probing the same published target; their probe
    counts are folded into the metric by the walker thread, which is the
    only writer of the worker's slot.
    """

    name = "dev"
    label = "device probes per sec"

    def __init__(
        self,
        root: str = "/dev",
        threads: int = 4,
        threshold: float = 0.25,
        bucket_count: int = 251,
        max_depth: int = 20,
        sibling_limit: int = 3,
        dispatch: DispatchTable | None = None,
        guard: DeadlineGuard | None = None,
        accept: Callable[[os.DirEntry], bool] = is_special_file,
        logger: Logger | None = None,
    ) -> None:
        super().__init__()
        self.root = root
        self.threads = threads
        self.threshold = threshold
        self.bucket_count = bucket_count
        self.max_depth = max_depth
        self.sibling_limit = sibling_limit
        self._dispatch = dispatch
        self._guard = guard
        self._accept = accept

        self.visited: VisitedCache | None = None
        self.timeouts = 0
        self._probe: DeviceProbe | None = None
        self._traversal: BoundedTraversal | None = None
        self._target = CurrentTarget()
        self._stop = threading.Event()
        self._executor: ThreadPoolExecutor | None = None
        self._futures: List[Future] = []
        self._background_lock = threading.Lock()
        self._background_probes = 0
        self._background_duration = 0.0
        self._logger = logger or Logger()

    @classmethod
    def from_env(cls, env: Env, root: str = "/dev"):
        return cls(
            root=root,
            threads=env.HYPERSTRESS_PROBE_THREADS,
            threshold=env.HYPERSTRESS_DEADLINE_THRESHOLD,
            bucket_count=env.HYPERSTRESS_VISITED_BUCKETS,
            max_depth=env.HYPERSTRESS_TRAVERSAL_MAX_DEPTH,
            sibling_limit=env.HYPERSTRESS_TRAVERSAL_SIBLING_LIMIT,
        )

    def setup(self, keep_running: Callable[[], bool] = _always) -> None:
        super().setup(keep_running)

        self.visited = VisitedCache(self.bucket_count)
        self._probe = DeviceProbe(
            self.visited,
            guard=self._guard,
            threshold=self.threshold,
            dispatch=self._dispatch,
        )
        self._traversal = BoundedTraversal(
            self.visited,
            max_depth=self.max_depth,
            sibling_limit=self.sibling_limit,
            accept=self._accept,
            keep_running=self._running,
        )

        self._stop.clear()
        if self.threads > 0:
            self._executor = ThreadPoolExecutor(
                max_workers=self.threads,
                thread_name_prefix="hyperstress-probe",
            )
            self._futures = [
                self._executor.submit(self._probe_published_target)
                for _ in range(self.threads)
            ]

    def _running(self) -> bool:
        return not self._stop.is_set() and self.keep_running()

    def _probe_published_target(self):
        while self._running():
            path = self._target.get()
            if not path:
                self._stop.wait(0.01)
                continue

            start = time.monotonic()
            self._probe.probe(path)
            elapsed = time.monotonic() - start

            with self._background_lock:
                self._background_probes += 1
                self._background_duration += elapsed

    def _drain_background(self) -> Tuple[float, int]:
        with self._background_lock:
            duration = self._background_duration
            probes = self._background_probes
            self._background_duration = 0.0
            self._background_probes = 0

        return duration, probes

    def run(self, metric: MetricView) -> None:
        for path in self._traversal.walk(self.root):
            self._target.publish(path)

            start = time.monotonic()
            result = self._probe.probe(path)
            elapsed = time.monotonic() - start
            metric.add(elapsed, 1.0)

            if result.timed_out:
                self.timeouts += 1
                self._logger.log(
                    ProbeDebug(
                        message=f"{path}: abandoned after {result.steps} steps",
                        path=path,
                        elapsed=elapsed,
                    ),
                    name="device_probe",
                )

        duration, probes = self._drain_background()
        metric.add(duration, float(probes))

    def teardown(self) -> None:
        self._target.clear()
        self._stop.set()

        if self._executor:
            self._executor.shutdown(wait=True)
            for future in self._futures:
                future.result()

            self._executor = None
            self._futures = []
