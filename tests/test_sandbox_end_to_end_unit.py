# User value: This test runs the real client, poller, review form and exporter against the in-process sandbox.
import asyncio
import unittest

from app import create_app
from services.client_factory import build_api_client
from services.repository import SandboxStore
from services.streaming_export import StreamingExportClient
from services.upload_gate import UploadedFile
from services.upload_orchestrator import ContractUploadWorkflow


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


class SandboxEndToEndUnitTests(unittest.TestCase):
    # User value: a contract uploaded to the sandbox becomes a vendor, and re-uploading it is flagged.
    def test_create_vendor_then_duplicate_is_flagged(self):
        store = SandboxStore()
        app = create_app(store, api_token="sandbox-token", job_polls_to_complete=2)
        clock = FakeClock()
        completed = []

        async def run_case():
            client = build_api_client(sandbox=True, sandbox_app=app)
            try:
                workflow = ContractUploadWorkflow(client, clock=clock, sleep=clock.sleep, on_complete=completed.append)
                step = await workflow.upload(UploadedFile.from_bytes("globex_msa.pdf", b"%PDF-1.4 globex"))
                self.assertEqual(step, "review", workflow.error)
                self.assertEqual(workflow.review.state.primary_vendor_name, "Globex")
                self.assertIn("globex_msa.pdf", workflow.review.contract_reconciliation_summary)

                await workflow.review.name_check.wait()
                self.assertEqual(workflow.review.name_check.status, "unique")
                result = await workflow.confirm()
                self.assertIsNotNone(result, workflow.error)

                vendor = await client.get_vendor(result.vendor_id)
                self.assertEqual(vendor.name, "Globex")

                again = ContractUploadWorkflow(client, clock=clock, sleep=clock.sleep)
                self.assertEqual(await again.upload(UploadedFile.from_bytes("globex_contract.pdf", b"%PDF")), "review")
                await again.review.name_check.wait()
                self.assertEqual(again.review.name_check.status, "duplicate")
                self.assertEqual(again.review.name_check.existing_vendor_id, result.vendor_id)
                self.assertIsNone(await again.confirm())
                self.assertIn("Globex", again.error)
                again.close()
            finally:
                await client.aclose()

        asyncio.run(run_case())
        self.assertEqual(len(completed), 1)
        self.assertEqual(len(store.vendors), 1)

    # User value: replacing a vendor's contract through the sandbox yields the new contract id.
    def test_replace_contract_round_trip(self):
        store = SandboxStore()
        vendor = store.vendors.create({"name": "Initech", "canonical_name": "Initech", "active": True})
        app = create_app(store, api_token="", job_polls_to_complete=0)
        clock = FakeClock()

        async def run_case():
            client = build_api_client(sandbox=True, sandbox_app=app)
            try:
                workflow = ContractUploadWorkflow(
                    client,
                    mode="replace",
                    vendor_id=vendor["id"],
                    clock=clock,
                    sleep=clock.sleep,
                )
                self.assertEqual(await workflow.upload(UploadedFile.from_bytes("initech_2025.pdf", b"%PDF")), "review")
                await workflow.review.name_check.wait()
                workflow.review.set_field("dba_display_name", "Initech Corp")
                await workflow.review.name_check.wait()
                return await workflow.confirm()
            finally:
                await client.aclose()

        result = asyncio.run(run_case())
        self.assertEqual(result.vendor_id, vendor["id"])
        contract = store.contracts.get_by_id(result.contract_id)
        self.assertTrue(contract["active"])
        self.assertEqual(store.vendors.get_by_id(vendor["id"])["canonical_name"], "Initech Corp")

    # User value: an export through the sandbox is validated, streamed and reported complete.
    def test_findings_export_round_trip(self):
        store = SandboxStore()
        store.findings.create(
            {
                "id": "finding-1",
                "vendor_id": "V1",
                "invoice_id": "inv-1",
                "finding_type": "price_variance",
                "priority": "high",
                "relevance": "relevant",
                "description": "Unit price above contract rate",
                "amount": 12.5,
                "created_at": "2024-03-01T00:00:00+00:00",
            }
        )
        app = create_app(store, api_token="")

        async def run_case():
            client = build_api_client(sandbox=True, sandbox_app=app)
            try:
                exporter = StreamingExportClient(client, preflight=True)
                download = await exporter.export("findings", {"start_date": "2024-01-01", "priority": "high"})
                progress = await exporter.track(download.export_id)
                return download, progress
            finally:
                await client.aclose()

        download, progress = asyncio.run(run_case())
        self.assertTrue(download.export_id.startswith("export-"))
        self.assertIn(b"finding-1", download.content)
        self.assertEqual(progress.status, "completed")
        self.assertEqual(progress.processed_records, 1)


if __name__ == "__main__":
    unittest.main()
