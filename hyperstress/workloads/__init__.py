from .arithmetic import MaskedArithmeticWorkload, arithmetic_workload_set
from .device import DeviceProbeWorkload
from .workload import Workload
from .workload_set import WorkloadSet
