from .env import Env, load_env
from .runner import StressResult, run_stressor
from .supervisor import ExitStatus, WorkerSupervisor
from .workloads import Workload, WorkloadSet
