from typing import Callable, Iterator, List, Sequence

from .workload import Workload


class WorkloadSet:
    def __init__(self, name: str, workloads: Sequence[Workload]) -> None:
        if len(workloads) < 1:
            raise ValueError(f"Workload set {name} requires at least one workload")

        self.name = name
        self._workloads = tuple(workloads)

    def __len__(self):
        return len(self._workloads)

    def __iter__(self) -> Iterator[Workload]:
        return iter(self._workloads)

    def __getitem__(self, kind: int) -> Workload:
        return self._workloads[kind]

    @property
    def labels(self) -> List[str]:
        return [workload.label for workload in self._workloads]

    def setup(self, keep_running: Callable[[], bool]):
        for workload in self._workloads:
            workload.setup(keep_running)

    def teardown(self):
        for workload in self._workloads:
            workload.teardown()
