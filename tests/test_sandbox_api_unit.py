# User value: This test keeps the sandbox backend faithful to the HTTP contract the workflow client relies on.
import unittest

from fastapi.testclient import TestClient

from app import create_app
from services.repository import SandboxStore

PDF = ("acme_co_contract.pdf", b"%PDF-1.4 sandbox", "application/pdf")


class SandboxApiUnitTests(unittest.TestCase):
    def setUp(self):
        self.store = SandboxStore()
        self.client = TestClient(create_app(self.store, api_token="", job_polls_to_complete=2))

    def _upload(self, path="/api/vendors/create-from-contract/upload", file=PDF) -> str:
        res = self.client.post(path, files={"file": file})
        self.assertEqual(res.status_code, 200, res.text)
        return res.json()["jobId"]

    def _poll_until_completed(self, job_id: str) -> dict:
        statuses = []
        for _ in range(5):
            body = self.client.get(f"/api/jobs/{job_id}").json()
            statuses.append(body["status"])
            if body["status"] == "completed":
                break
        self.assertEqual(statuses, ["processing", "processing", "completed"])
        return body

    def test_health(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "OK")

    # User value: an uploaded contract turns into a reviewable extraction after a few polls.
    def test_upload_poll_confirm_create(self):
        job_id = self._upload()
        job = self._poll_until_completed(job_id)
        self.assertEqual(job["progress"], 100.0)
        self.assertEqual(job["result"]["primaryVendorName"], "Acme Co")
        self.assertIn("contractReconciliationSummary", job["result"])
        self.assertNotIn("error", job)

        res = self.client.post(
            "/api/vendors/create-from-contract/confirm",
            json={"primaryVendorName": "Acme Co", "effectiveDate": "2024-01-01", "jobId": job_id},
        )
        self.assertEqual(res.status_code, 200, res.text)
        created = res.json()
        self.assertTrue(created["vendorId"].startswith("vendor-"))
        self.assertTrue(created["contractId"].startswith("contract-"))

        again = self.client.post(
            "/api/vendors/create-from-contract/confirm",
            json={"primaryVendorName": "Other Co", "effectiveDate": "2024-01-01", "jobId": job_id},
        )
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error_code"], "JOB_ALREADY_CONFIRMED")

        check = self.client.post("/api/vendors/check-name", json={"name": "  acme co "}).json()
        self.assertEqual(check, {"isUnique": False, "existingVendorId": created["vendorId"]})

    def test_confirm_before_completion_conflicts(self):
        job_id = self._upload()
        res = self.client.post(
            "/api/vendors/create-from-contract/confirm",
            json={"primaryVendorName": "Acme Co", "effectiveDate": "2024-01-01", "jobId": job_id},
        )
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error_code"], "JOB_NOT_COMPLETED")

    def test_upload_rejects_unsupported_type(self):
        res = self.client.post(
            "/api/vendors/create-from-contract/upload",
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        self.assertEqual(res.status_code, 400)
        body = res.json()
        self.assertEqual(body["error_code"], "UNSUPPORTED_FILE_TYPE")
        self.assertIn("File type not supported", body["error_message"])
        self.assertTrue(body["request_id"])

    def test_unknown_job_is_404(self):
        res = self.client.get("/api/jobs/job-missing")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.json()["error_code"], "JOB_NOT_FOUND")

    def test_request_id_is_echoed(self):
        res = self.client.get("/api/health", headers={"X-Request-ID": "req-test-12345"})
        self.assertEqual(res.headers["X-Request-ID"], "req-test-12345")

    # User value: replacing a contract retires the old one and returns the new contract id.
    def test_replace_contract_flow(self):
        vendor = self.store.vendors.create({"name": "Acme Co", "canonical_name": "Acme Co", "active": True})
        old = self.store.contracts.create({"vendor_id": vendor["id"], "active": True})

        job_id = self._upload(path=f"/api/vendors/{vendor['id']}/replace-contract")
        self._poll_until_completed(job_id)

        patched = self.client.patch(
            f"/api/vendors/{vendor['id']}",
            json={"name": "Acme Company", "canonicalName": "Acme"},
        )
        self.assertEqual(patched.status_code, 200, patched.text)
        self.assertEqual(patched.json()["name"], "Acme Company")
        self.assertEqual(patched.json()["canonicalName"], "Acme")

        res = self.client.post(
            f"/api/vendors/{vendor['id']}/replace-contract/confirm",
            json={"primaryVendorName": "Acme Company", "effectiveDate": "2024-02-01", "jobId": job_id},
        )
        self.assertEqual(res.status_code, 200, res.text)
        body = res.json()
        self.assertEqual(body["vendorId"], vendor["id"])
        self.assertNotEqual(body["contractId"], old["id"])
        self.assertFalse(self.store.contracts.get_by_id(old["id"])["active"])
        self.assertTrue(self.store.contracts.get_by_id(body["contractId"])["active"])

    def test_rename_to_existing_vendor_conflicts(self):
        self.store.vendors.create({"name": "Globex"})
        acme = self.store.vendors.create({"name": "Acme Co"})
        res = self.client.patch(f"/api/vendors/{acme['id']}", json={"name": "globex"})
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["error_code"], "DUPLICATE_VENDOR_NAME")

    def test_vendor_listing_and_lookup(self):
        acme = self.store.vendors.create({"name": "Acme Co"})
        listed = self.client.get("/api/vendors").json()
        self.assertEqual([v["id"] for v in listed], [acme["id"]])
        self.assertEqual(self.client.get(f"/api/vendors/{acme['id']}").json()["name"], "Acme Co")
        self.assertEqual(self.client.get("/api/vendors/vendor-missing").status_code, 404)

    # User value: exports stream the selected rows and leave a completed progress record behind.
    def test_invoice_export_stream_and_progress(self):
        self.store.invoices.create(
            {"id": "inv-1", "vendor_id": "V1", "invoice_number": "A-1", "invoice_date": "2024-01-10", "amount": 100}
        )
        self.store.invoices.create(
            {"id": "inv-2", "vendor_id": "V1", "invoice_number": "A-2", "invoice_date": "2023-12-01", "amount": 50}
        )
        self.store.invoices.create(
            {
                "id": "inv-3",
                "vendor_id": "V2",
                "invoice_number": "B-1",
                "invoice_date": "2024-01-15",
                "amount": 75,
                "relevant": False,
            }
        )

        res = self.client.get("/api/streaming-reports/invoices.csv", params={"start_date": "2024-01-01", "chunk_size": "1"})
        self.assertEqual(res.status_code, 200, res.text)
        export_id = res.headers["X-Export-ID"]
        self.assertIn("attachment", res.headers["content-disposition"])
        lines = res.text.strip().splitlines()
        self.assertTrue(lines[0].startswith("id,vendor_id,invoice_number"))
        self.assertEqual([line.split(",")[0] for line in lines[1:]], ["inv-1"])

        progress = self.client.get(f"/api/streaming-reports/progress/{export_id}").json()
        self.assertEqual(progress["status"], "completed")
        self.assertEqual(progress["processed_records"], 1)
        self.assertEqual(self.client.get("/api/streaming-reports/active").json(), [])

    def test_export_with_bad_window_is_rejected(self):
        res = self.client.get(
            "/api/streaming-reports/findings.csv",
            params={"start_date": "2024-02-01", "end_date": "2024-01-01"},
        )
        self.assertEqual(res.status_code, 400)
        self.assertIn("Start date must be before end date", res.json()["error_message"])

    def test_validate_export_params(self):
        ok = self.client.post("/api/streaming-reports/validate/disputes", json={}).json()
        self.assertEqual(ok["valid"], True)
        self.assertEqual((ok["estimated_records"], ok["estimated_duration_seconds"]), (25, 5))

        bad = self.client.post(
            "/api/streaming-reports/validate/invoices",
            json={"start_date": "2024-02-01", "end_date": "2024-01-01"},
        ).json()
        self.assertFalse(bad["valid"])
        self.assertEqual(bad["errors"], ["Start date must be before end date"])
        self.assertEqual(bad["estimated_records"], 500)

        unknown = self.client.post("/api/streaming-reports/validate/payments", json={})
        self.assertEqual(unknown.status_code, 404)

    def test_cancel_export(self):
        record = self.store.exports.create({"kind": "findings", "status": "processing", "progress": 20.0})
        first = self.client.post(f"/api/streaming-reports/cancel/{record['id']}").json()
        self.assertTrue(first["success"])
        self.assertEqual(self.store.exports.get_by_id(record["id"])["status"], "cancelled")

        second = self.client.post(f"/api/streaming-reports/cancel/{record['id']}").json()
        self.assertFalse(second["success"])
        self.assertEqual(self.client.post("/api/streaming-reports/cancel/export-missing").status_code, 404)


class SandboxAuthUnitTests(unittest.TestCase):
    def test_token_required_when_configured(self):
        client = TestClient(create_app(SandboxStore(), api_token="s3cret"))
        res = client.get("/api/vendors")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.json()["error_code"], "AUTH_MISSING_TOKEN")

        wrong = client.get("/api/vendors", headers={"Authorization": "Bearer nope"})
        self.assertEqual(wrong.json()["error_code"], "AUTH_INVALID_TOKEN")

        ok = client.get("/api/vendors", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(ok.status_code, 200)

        self.assertEqual(client.get("/api/health").status_code, 200)


if __name__ == "__main__":
    unittest.main()
