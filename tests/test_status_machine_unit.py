import unittest

from utils.status_machine import (
    check_poller_transition,
    is_allowed_job_transition,
    is_allowed_poller_transition,
    is_terminal_job_status,
    transition_job,
)


class StatusMachineUnitTests(unittest.TestCase):
    def test_terminal_job_statuses(self):
        for status in ("completed", "failed", "timeout", "COMPLETED"):
            self.assertTrue(is_terminal_job_status(status))
        for status in ("pending", "processing", None, ""):
            self.assertFalse(is_terminal_job_status(status))

    def test_job_transitions(self):
        self.assertTrue(is_allowed_job_transition(None, "pending"))
        self.assertTrue(is_allowed_job_transition("pending", "processing"))
        self.assertTrue(is_allowed_job_transition("processing", "completed"))
        self.assertFalse(is_allowed_job_transition("processing", "pending"))
        self.assertFalse(is_allowed_job_transition("completed", "processing"))
        self.assertTrue(is_allowed_job_transition("failed", "failed"))

    # User value: a finished poller only restarts through a new submit.
    def test_poller_terminal_states_only_leave_via_submit(self):
        for terminal in ("completed", "failed", "timed_out"):
            self.assertTrue(is_allowed_poller_transition(terminal, "submitting"))
            for other in ("idle", "polling", "completed", "failed", "timed_out"):
                self.assertFalse(is_allowed_poller_transition(terminal, other), (terminal, other))

    def test_poller_active_paths(self):
        self.assertTrue(is_allowed_poller_transition("idle", "submitting"))
        self.assertFalse(is_allowed_poller_transition("idle", "polling"))
        self.assertTrue(is_allowed_poller_transition("submitting", "polling"))
        self.assertTrue(is_allowed_poller_transition("submitting", "failed"))
        self.assertTrue(is_allowed_poller_transition("polling", "timed_out"))
        self.assertTrue(is_allowed_poller_transition("polling", "idle"))

    def test_check_poller_transition_logs_block(self):
        with self.assertLogs("drift.status_machine", level="WARNING") as logs:
            self.assertFalse(check_poller_transition("completed", "polling", context="test", job_id="J1"))
        self.assertIn("poller_transition_blocked", logs.output[0])

    def test_transition_job_updates_record_in_place(self):
        record = {"id": "J1", "status": "processing"}
        self.assertTrue(transition_job(record, target="completed", context="test", progress=100.0))
        self.assertEqual(record["status"], "completed")
        self.assertEqual(record["progress"], 100.0)

        self.assertFalse(transition_job(record, target="processing", context="test", progress=5.0))
        self.assertEqual(record["status"], "completed")
        self.assertEqual(record["progress"], 100.0)


if __name__ == "__main__":
    unittest.main()
