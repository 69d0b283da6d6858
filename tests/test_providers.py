"""Tests for delivery channels and message templates."""

import asyncio
import json
import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from shortage_fixtures import scratch_dir  # noqa: E402

import httpx  # noqa: E402

from shortage_sync.models.status import ProductStatus  # noqa: E402
from shortage_sync.models.sync import ChangeEvent  # noqa: E402
from shortage_sync.notify.gateway import HttpPushProvider  # noqa: E402
from shortage_sync.notify.mock import MockEmailSender, MockPushProvider  # noqa: E402
from shortage_sync.notify.providers import get_email_sender, get_push_provider  # noqa: E402
from shortage_sync.notify.templates import build_alert_email, build_push_message  # noqa: E402


def _event(status: ProductStatus, product_id=42) -> ChangeEvent:
    return ChangeEvent(
        product_code="CIS001",
        product_id=product_id,
        product_name="DOLIPRANE <1000mg>",
        status=status,
        previous_status=ProductStatus.AVAILABLE,
    )


class TestTemplates(unittest.TestCase):
    def test_push_titles_differ_per_status(self):
        titles = {build_push_message(_event(s)).title for s in ProductStatus}
        self.assertEqual(len(titles), len(ProductStatus))

    def test_push_data_values_are_strings(self):
        message = build_push_message(_event(ProductStatus.TENSION, product_id=None))
        self.assertEqual(message.data["productId"], "")
        self.assertEqual(message.data["type"], "MEDICATION_STATUS")
        self.assertTrue(all(isinstance(v, str) for v in message.data.values()))

    def test_email_escapes_product_name(self):
        content = build_alert_email(_event(ProductStatus.SHORTAGE), user_name="Camille", base_url="https://app.test")
        self.assertIn("Rupture de stock", content.subject)
        self.assertIn("DOLIPRANE &lt;1000mg&gt;", content.html)
        self.assertIn("https://app.test/medications/42", content.html)
        self.assertIn("Bonjour Camille,", content.html)


class TestMockChannels(unittest.TestCase):
    def test_push_outbox(self):
        path = scratch_dir() / "push.json"
        provider = MockPushProvider(outbox_path=path, rejected_tokens={"dead"})
        result = asyncio.run(provider.send_multicast(["a", "dead", "b"], build_push_message(_event(ProductStatus.SHORTAGE))))
        self.assertEqual((result.success_count, result.failure_count), (2, 1))
        self.assertEqual(result.failed_tokens, ["dead"])
        saved = json.loads(path.read_text(encoding="utf-8"))
        self.assertEqual(saved[0]["tokens"], ["a", "b"])
        self.assertEqual(saved[0]["data"]["status"], "SHORTAGE")

    def test_email_outbox(self):
        path = scratch_dir() / "email.json"
        sender = MockEmailSender(outbox_path=path)
        self.assertTrue(asyncio.run(sender.send("a@example.com", "Subject", "<p>hi</p>")))
        self.assertTrue(asyncio.run(sender.send("b@example.com", "Subject", "<p>hi</p>")))
        self.assertEqual([m["to"] for m in sender.sent], ["a@example.com", "b@example.com"])


class TestHttpPushProvider(unittest.TestCase):
    def _run(self, handler, tokens, **kwargs):
        async def go():
            client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
            provider = HttpPushProvider(base_url="https://push.test", token="k", client=client, base_delay=0, **kwargs)
            try:
                return await provider.send_multicast(tokens, build_push_message(_event(ProductStatus.SHORTAGE)))
            finally:
                await client.aclose()

        return asyncio.run(go())

    def test_per_token_results(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            payload = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "responses": [
                        {"success": True} if t != "bad" else {"success": False, "error": "unregistered"}
                        for t in payload["tokens"]
                    ]
                },
            )

        result = self._run(handler, ["t1", "bad", "t2"])
        self.assertEqual(result.success_count, 2)
        self.assertEqual(result.failed_tokens, ["bad"])
        self.assertIn("unregistered", result.errors[0])
        self.assertEqual(requests[0].url.path, "/send")
        self.assertEqual(requests[0].headers["Authorization"], "Bearer k")
        body = json.loads(requests[0].content)
        self.assertEqual(body["notification"]["title"], build_push_message(_event(ProductStatus.SHORTAGE)).title)

    def test_large_token_lists_are_chunked(self):
        sizes = []

        def handler(request: httpx.Request) -> httpx.Response:
            tokens = json.loads(request.content)["tokens"]
            sizes.append(len(tokens))
            return httpx.Response(200, json={"responses": [{"success": True}] * len(tokens)})

        result = self._run(handler, [f"t{i}" for i in range(1200)])
        self.assertEqual(sizes, [500, 500, 200])
        self.assertEqual(result.success_count, 1200)

    def test_gateway_error_fails_every_token(self):
        result = self._run(lambda request: httpx.Response(500), ["t1", "t2"])
        self.assertEqual(result.failure_count, 2)
        self.assertEqual(result.failed_tokens, ["t1", "t2"])

    def test_transient_error_is_retried(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("reset", request=request)
            return httpx.Response(200, json={"responses": [{"success": True}]})

        result = self._run(handler, ["t1"])
        self.assertEqual(len(attempts), 2)
        self.assertEqual(result.success_count, 1)

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            HttpPushProvider(base_url="")


class TestFactories(unittest.TestCase):
    def test_known_kinds(self):
        self.assertIsInstance(get_push_provider("mock"), MockPushProvider)
        self.assertIsInstance(get_email_sender("mock"), MockEmailSender)
        self.assertIsNone(get_email_sender("none"))

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            get_push_provider("carrier-pigeon")


if __name__ == "__main__":
    unittest.main()
