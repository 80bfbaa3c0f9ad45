from .handler import JobHandler
from .long_running import LongRunningJobsFinder
from .lost_jobs import LostJobsFinder
from .notifier import FailureNotifier
from .reaper import Reaper
from .recency import RecencyCache
from .scheduler import ManualScheduler, Scheduler, SchedulerProtocol
from .stuck_runs import StuckRunsFinder
from .watch import JobWatchHelper
from .component import MonitorComponent, build_component

__all__ = [
    "FailureNotifier",
    "JobHandler",
    "JobWatchHelper",
    "LongRunningJobsFinder",
    "LostJobsFinder",
    "ManualScheduler",
    "MonitorComponent",
    "Reaper",
    "RecencyCache",
    "Scheduler",
    "SchedulerProtocol",
    "StuckRunsFinder",
    "build_component",
]
