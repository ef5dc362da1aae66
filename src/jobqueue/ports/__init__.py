from .background_worker import IBackgroundWorker
from .handler import IJobHandler, JobContext
from .transport import IQueueTransport, MessageCallback

__all__ = [
    "IBackgroundWorker",
    "IJobHandler",
    "IQueueTransport",
    "JobContext",
    "MessageCallback",
]
