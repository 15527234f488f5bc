import json
import tempfile
import unittest
from pathlib import Path

from jobrunner.core.target import Target
from jobrunner.joblog import ERRORS_CHANNEL, JOBS_CHANNEL, JobLog, JobLogStoreJSONL, Replay


class TestJobLog(unittest.TestCase):
    def test_records_routed_by_channel(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            jobs = Path(td) / "logs" / "jobs.jsonl"
            errors = Path(td) / "logs" / "errors.jsonl"
            log = JobLog.to_files(jobs, errors, run_id="r1")
            target = Target("app.jobs.SendEmail", "handle")

            log.started(target, ["user@example.com"])
            try:
                raise RuntimeError("boom")
            except RuntimeError as e:
                log.retry(target, e, retries_left=3, attempt=1)
                log.failed(target, e, error_code="job.execution_failed", attempt=2)
            log.completed(target, attempt=2)

            job_events = list(Replay(jobs).iter_events())
            error_events = list(Replay(errors).iter_events())

            self.assertEqual([e["event_type"] for e in job_events], ["job_started", "job_completed"])
            self.assertEqual([e["event_type"] for e in error_events], ["job_retry", "job_failed"])
            self.assertTrue(all(e["channel"] == JOBS_CHANNEL for e in job_events))
            self.assertTrue(all(e["channel"] == ERRORS_CHANNEL for e in error_events))

            retry, failed = error_events
            self.assertEqual(retry["level"], "warning")
            self.assertEqual(retry["data"], {"error": "boom", "retries_left": 3, "attempt": 1})
            self.assertEqual(failed["level"], "error")
            self.assertEqual(failed["data"]["error_code"], "job.execution_failed")
            self.assertIn("Traceback", failed["data"]["trace"])
            self.assertTrue(failed["ts"].endswith("Z"))
            self.assertEqual(failed["message"], "Job Failed: app.jobs.SendEmail::handle")

    def test_store_appends_and_serializes_opaque_values(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "a" / "b.jsonl"
            store = JobLogStoreJSONL(p)
            store.append({"n": 1})
            store.append({"obj": object()})
            lines = p.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 2)
            self.assertEqual(json.loads(lines[0]), {"n": 1})
            self.assertTrue(json.loads(lines[1])["obj"].startswith("<object object"))

    def test_arguments_defaulted_is_a_warning(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            errors = Path(td) / "errors.jsonl"
            log = JobLog.to_files(Path(td) / "jobs.jsonl", errors, run_id="r2")
            log.arguments_defaulted(Target("app.jobs.X", "run"), "[1,")
            (event,) = list(Replay(errors).iter_events())
            self.assertEqual(event["event_type"], "arguments_defaulted")
            self.assertEqual(event["level"], "warning")
            self.assertEqual(event["data"]["payload"], "[1,")

    def test_missing_channel_store_rejected(self) -> None:
        with self.assertRaises(KeyError):
            JobLog({JOBS_CHANNEL: JobLogStoreJSONL(Path("unused.jsonl"))}, run_id="r")

    def test_replay_of_missing_file_is_empty(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(list(Replay(Path(td) / "nope.jsonl").iter_events()), [])


if __name__ == "__main__":
    unittest.main()
