from .job_log import ERRORS_CHANNEL, JOBS_CHANNEL, JobLog
from .log_store_jsonl import JobLogStoreJSONL
from .replay import Replay

__all__ = ["JobLog", "JobLogStoreJSONL", "Replay", "JOBS_CHANNEL", "ERRORS_CHANNEL"]
