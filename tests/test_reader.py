"""Tests for the registry reader: local directory, remote fetch via a mock transport, failures."""

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from shortage_fixtures import catalog_line, scratch_dir, shortage_line, write_registry_files  # noqa: E402

import httpx  # noqa: E402

from shortage_sync.exceptions import SourceUnavailable  # noqa: E402
from shortage_sync.registry.reader import (  # noqa: E402
    CATALOG,
    SHORTAGE,
    RegistryReader,
    decode_registry_bytes,
)


class TestDecode(unittest.TestCase):
    def test_latin1_and_crlf(self):
        raw = "CIS001\tPARACÉTAMOL\r\n\r\nCIS002\tIBUPROFÈNE\r\n".encode("latin-1")
        self.assertEqual(decode_registry_bytes(raw), ["CIS001\tPARACÉTAMOL", "CIS002\tIBUPROFÈNE"])


class TestLocalReader(unittest.TestCase):
    def setUp(self):
        self.dir = write_registry_files(
            scratch_dir(),
            catalog=[catalog_line("CIS001", "DOLIPRANE 1000mg")],
            compositions=None,
            shortages=[shortage_line("CIS001", "Rupture de stock")],
        )

    def test_reads_lines_and_raw_bytes(self):
        with RegistryReader(source_dir=self.dir) as reader:
            doc = reader.read(CATALOG)
        self.assertEqual(doc.file_key, CATALOG)
        self.assertEqual(doc.filename, "CIS_bdpm.txt")
        self.assertEqual(len(doc.lines), 1)
        self.assertTrue(doc.raw.endswith(b"\r\n"))

    def test_missing_file_is_source_unavailable(self):
        with RegistryReader(source_dir=self.dir) as reader:
            with self.assertRaises(SourceUnavailable) as ctx:
                reader.read("composition")
        self.assertEqual(ctx.exception.file_key, "composition")

    def test_unknown_file_key(self):
        with RegistryReader(source_dir=self.dir) as reader:
            with self.assertRaises(ValueError):
                reader.read("nope")


class TestRemoteReader(unittest.TestCase):
    def _client(self, handler) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(handler))

    def test_fetches_from_base_url(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=shortage_line("CIS001", "Tension").encode("latin-1"))

        reader = RegistryReader(base_url="https://example.test/download/file", source_dir="", http_client=self._client(handler))
        doc = reader.read(SHORTAGE)
        self.assertEqual(seen, ["https://example.test/download/file/CIS_CIP_Dispo_Spec.txt"])
        self.assertEqual(doc.lines[0].split("\t")[0], "CIS001")

    def test_http_error_is_source_unavailable(self):
        reader = RegistryReader(
            base_url="https://example.test",
            source_dir="",
            http_client=self._client(lambda request: httpx.Response(503)),
        )
        with self.assertRaises(SourceUnavailable) as ctx:
            reader.read(CATALOG)
        self.assertIn("503", ctx.exception.reason)

    def test_transport_error_is_source_unavailable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        reader = RegistryReader(base_url="https://example.test", source_dir="", http_client=self._client(handler))
        with self.assertRaises(SourceUnavailable):
            reader.read(CATALOG)


if __name__ == "__main__":
    unittest.main()
