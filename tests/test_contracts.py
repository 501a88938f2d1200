from __future__ import annotations

import re
import unittest
from pathlib import Path

from achievement_report.contracts import (
    CONTRACT_VERSIONS,
    build_contract,
    build_contract_document,
    build_run_summary,
    utc_now_iso,
)


class ContractTests(unittest.TestCase):
    def test_document_carries_contract_body_and_run_summary(self):
        run_summary = build_run_summary(
            tool="achievement-report",
            command="build",
            template="templates/north.xlsx",
            payload_path=Path("payload.json"),
            metrics={"filledCells": 4},
            warnings=["API response envelope detected"],
        )
        document = build_contract_document("achievement_report.summary", {"file_name": "a.xlsx"}, run_summary)

        self.assertEqual(document["contract"], {"name": "achievement_report.summary", "version": "1.0.0"})
        self.assertEqual(document["schema_version"], document["contract"]["version"])
        self.assertEqual(document["file_name"], "a.xlsx")
        self.assertEqual(document["run_summary"]["payload_file"], "payload.json")
        self.assertIsNone(document["run_summary"]["output_file"])
        self.assertEqual(document["run_summary"]["status"], "ok")
        self.assertEqual(document["run_summary"]["warnings_count"], 1)
        self.assertEqual(document["run_summary"]["metrics"], {"filledCells": 4})

    def test_every_contract_is_versioned(self):
        for name, version in CONTRACT_VERSIONS.items():
            self.assertEqual(build_contract(name)["version"], version)
            self.assertRegex(version, r"^\d+\.\d+\.\d+$")
        with self.assertRaises(KeyError):
            build_contract("achievement_report.unknown")

    def test_timestamps_are_utc_seconds(self):
        self.assertTrue(re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$", utc_now_iso()))


if __name__ == "__main__":
    unittest.main()
