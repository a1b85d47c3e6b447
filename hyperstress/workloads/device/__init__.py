from .current_target import CurrentTarget
from .device_probe import DeviceProbe, ProbeResult
from .device_workload import DeviceProbeWorkload
from .dispatch_table import DispatchTable, DeviceHandler
from .traversal import BoundedTraversal, is_special_file
