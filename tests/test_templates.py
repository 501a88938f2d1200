import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from template_factory import STANDARD_ROWS, make_workbook, save_workbook

from achievement_report import templates
from achievement_report.errors import AchievementReportError, TemplateFetchError, TemplateFormatError
from achievement_report.templates import (
    DEFAULT_TIMEOUT_SECONDS,
    TIMEOUT_ENV_VAR,
    default_timeout,
    discover_templates,
    fetch_template_bytes,
    load_template_workbook,
    template_name_from_url,
)


class TemplateFetchTests(unittest.TestCase):
    def test_local_path_and_file_url(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = save_workbook(make_workbook({"Cumulative": STANDARD_ROWS}), Path(tmpdir) / "north region.xlsx")
            data = path.read_bytes()
            self.assertEqual(fetch_template_bytes(str(path)), data)
            self.assertEqual(fetch_template_bytes(path.as_uri()), data)
            workbook = load_template_workbook(data)
            self.assertEqual(workbook.sheetnames, ["Cumulative"])

    def test_missing_local_template(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(TemplateFetchError):
                fetch_template_bytes(str(Path(tmpdir) / "missing.xlsx"))

    def test_oversized_download_is_refused(self):
        session = mock.Mock()
        response = mock.Mock(ok=True, status_code=200)
        response.iter_content.return_value = [b"abc", b"def"]
        session.get.return_value = response
        with mock.patch.object(templates, "MAX_TEMPLATE_BYTES", 4):
            with self.assertRaises(TemplateFetchError):
                fetch_template_bytes("https://files.example.com/big.xlsx", session=session, timeout=1)
        response.close.assert_called_once_with()

    def test_default_timeout_is_used_for_remote_templates(self):
        session = mock.Mock()
        response = mock.Mock(ok=True, status_code=200)
        response.iter_content.return_value = [b"PK"]
        session.get.return_value = response
        with mock.patch.dict(os.environ, {TIMEOUT_ENV_VAR: "15"}):
            self.assertEqual(fetch_template_bytes("http://files.example.com/a.xlsx", session=session), b"PK")
        self.assertEqual(session.get.call_args.kwargs["timeout"], 15.0)

    def test_garbage_bytes_are_a_format_error(self):
        with self.assertRaises(TemplateFormatError):
            load_template_workbook(b"this is not a workbook")

    def test_empty_locator(self):
        with self.assertRaises(AchievementReportError):
            fetch_template_bytes("")


class TemplateSettingsTests(unittest.TestCase):
    def test_default_timeout(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            self.assertEqual(default_timeout(), DEFAULT_TIMEOUT_SECONDS)
        with mock.patch.dict(os.environ, {TIMEOUT_ENV_VAR: "2.5"}):
            self.assertEqual(default_timeout(), 2.5)
        with mock.patch.dict(os.environ, {TIMEOUT_ENV_VAR: "0"}):
            self.assertEqual(default_timeout(), DEFAULT_TIMEOUT_SECONDS)
        with mock.patch.dict(os.environ, {TIMEOUT_ENV_VAR: "soon"}):
            with self.assertRaises(AchievementReportError):
                default_timeout()

    def test_template_name_from_url(self):
        self.assertEqual(template_name_from_url("https://files.example.com/t/Sales.xlsx?sig=abc"), "Sales.xlsx")
        self.assertEqual(template_name_from_url("C:\\templates\\North.xlsx"), "North.xlsx")
        self.assertEqual(template_name_from_url("/"), "template")


class TemplateDiscoveryTests(unittest.TestCase):
    def test_templates_are_grouped_by_folder(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for relative in [
                "South/kandy.xlsx",
                "North/Galle.xlsx",
                "North/colombo.xlsx",
                "Region/East/Batticaloa.xlsx",
                "overall.xlsx",
                ".cache/stale.xlsx",
                "North/README",
            ]:
                path = root / relative
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(b"")

            groups = discover_templates(root)

        self.assertEqual([group.category for group in groups], ["North", "Region / East", "South", "Templates"])
        self.assertEqual([option.label for option in groups[0].options], ["colombo", "Galle"])
        self.assertEqual(groups[3].options[0].label, "overall")
        self.assertTrue(groups[3].options[0].value.endswith("overall.xlsx"))

    def test_empty_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertEqual(discover_templates(Path(tmpdir)), [])


if __name__ == "__main__":
    unittest.main()
