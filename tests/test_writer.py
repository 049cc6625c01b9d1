import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, patch

from vongform.domain.exceptions import WriteFailure
from vongform.domain.models import RenderedManifestPair
from vongform.infrastructure.writer import ManifestWriter

NEW_PAIR = RenderedManifestPair(requirements=b"dependencies: []\n", values=b"{}\n", chart=b"name: chart\n")


class TestManifestWriter(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _seed(self, directory: Path) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "requirements.yaml").write_bytes(b"old requirements\n")
        (directory / "values.yaml").write_bytes(b"old values\n")

    async def test_commit_creates_directory_and_writes_all_files(self) -> None:
        output_dir = self.root / "nested" / "chart"

        written = await ManifestWriter(output_dir).commit(NEW_PAIR)

        self.assertEqual([path.name for path in written], ["requirements.yaml", "values.yaml", "Chart.yaml"])
        self.assertEqual((output_dir / "requirements.yaml").read_bytes(), NEW_PAIR.requirements)
        self.assertEqual((output_dir / "values.yaml").read_bytes(), NEW_PAIR.values)
        self.assertEqual((output_dir / "Chart.yaml").read_bytes(), NEW_PAIR.chart)
        self.assertEqual(sorted(os.listdir(output_dir)), ["Chart.yaml", "requirements.yaml", "values.yaml"])

    async def test_interrupted_before_rename_keeps_previous_manifests(self) -> None:
        output_dir = self.root / "chart"
        self._seed(output_dir)

        with patch("aiofiles.os.replace", new_callable=AsyncMock, side_effect=OSError("interrupted")):
            with self.assertRaises(WriteFailure):
                await ManifestWriter(output_dir).commit(NEW_PAIR)

        self.assertEqual((output_dir / "requirements.yaml").read_bytes(), b"old requirements\n")
        self.assertEqual((output_dir / "values.yaml").read_bytes(), b"old values\n")
        self.assertEqual(sorted(os.listdir(output_dir)), ["requirements.yaml", "values.yaml"])

    async def test_failed_second_rename_restores_first(self) -> None:
        output_dir = self.root / "chart"
        self._seed(output_dir)
        calls = []

        def replace(src, dst):
            calls.append(dst)
            if len(calls) == 2:
                raise OSError("disk full")
            os.replace(src, dst)

        with patch("aiofiles.os.replace", new_callable=AsyncMock, side_effect=replace):
            with self.assertRaises(WriteFailure) as ctx:
                await ManifestWriter(output_dir).commit(NEW_PAIR)

        self.assertTrue(ctx.exception.path.endswith("values.yaml"))
        self.assertEqual((output_dir / "requirements.yaml").read_bytes(), b"old requirements\n")
        self.assertEqual((output_dir / "values.yaml").read_bytes(), b"old values\n")
        self.assertEqual(sorted(os.listdir(output_dir)), ["requirements.yaml", "values.yaml"])

    async def test_failed_rename_removes_files_that_did_not_exist(self) -> None:
        output_dir = self.root / "chart"
        calls = []

        def replace(src, dst):
            calls.append(dst)
            if len(calls) == 3:
                raise OSError("disk full")
            os.replace(src, dst)

        with patch("aiofiles.os.replace", new_callable=AsyncMock, side_effect=replace):
            with self.assertRaises(WriteFailure):
                await ManifestWriter(output_dir).commit(NEW_PAIR)

        self.assertEqual(os.listdir(output_dir), [])

    async def test_unpublished_stage_is_discarded(self) -> None:
        output_dir = self.root / "chart"
        self._seed(output_dir)

        with self.assertRaises(RuntimeError):
            async with ManifestWriter(output_dir).stage(NEW_PAIR) as staged:
                self.assertEqual(len(os.listdir(output_dir)), 5)
                self.assertFalse(staged.published)
                raise RuntimeError("store failed")

        self.assertEqual(sorted(os.listdir(output_dir)), ["requirements.yaml", "values.yaml"])
        self.assertEqual((output_dir / "values.yaml").read_bytes(), b"old values\n")

    async def test_unwritable_directory_is_write_failure(self) -> None:
        blocker = self.root / "file"
        blocker.write_bytes(b"")

        with self.assertRaises(WriteFailure):
            await ManifestWriter(blocker / "chart").commit(NEW_PAIR)
