import logging
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional, Tuple

import aiofiles
import aiofiles.os
from aiofiles.ospath import exists

from vongform.domain.exceptions import WriteFailure
from vongform.domain.models import RenderedManifestPair

logger = logging.getLogger(__name__)


class StagedManifests:
    """
    Rendered files written to temporary paths inside the output directory.
    `publish()` renames them into place; whatever is still staged when the
    writer's context exits is deleted.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self._staged: List[Tuple[Path, Path]] = []
        self.published = False

    async def add(self, name: str, content: bytes) -> None:
        target = self.output_dir / name
        tmp_path = self.output_dir / f".{name}.{secrets.token_hex(6)}.tmp"
        self._staged.append((target, tmp_path))
        try:
            async with aiofiles.open(tmp_path, mode="wb") as tmp_file:
                await tmp_file.write(content)
        except OSError as e:
            raise WriteFailure(str(tmp_path), e) from e

    async def publish(self) -> List[Path]:
        """
        Renames every staged file over its target. If a rename fails, targets already
        replaced during this call are restored to their previous content.
        """
        previous: Dict[Path, Optional[bytes]] = {}
        for target, _ in self._staged:
            previous[target] = await _read_if_exists(target)

        replaced: List[Path] = []
        try:
            for target, tmp_path in self._staged:
                await aiofiles.os.replace(tmp_path, target)
                replaced.append(target)
        except OSError as e:
            failed = self._staged[len(replaced)][0]
            logger.error(f"Rename into '{failed}' failed, restoring {len(replaced)} file(s).")
            await _restore(replaced, previous)
            raise WriteFailure(str(failed), e) from e

        self._staged = []
        self.published = True
        for target in replaced:
            logger.info(f"Wrote {target}.")
        return replaced

    async def discard(self) -> None:
        for _, tmp_path in self._staged:
            try:
                await aiofiles.os.remove(tmp_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Could not remove temporary file '{tmp_path}': {e}")
        self._staged = []


class ManifestWriter:
    """
    Commits a rendered chart into the output directory so a reader either sees
    the previous set of files or the complete new set.
    """

    def __init__(self, output_dir: Path):
        self.output_dir = Path(output_dir)

    @asynccontextmanager
    async def stage(self, pair: RenderedManifestPair) -> AsyncIterator[StagedManifests]:
        """
        Writes every file of `pair` to a temporary path and yields the staged set.
        Publishing is left to the caller; leaving the block discards anything unpublished.
        """
        try:
            await aiofiles.os.makedirs(self.output_dir, exist_ok=True)
        except OSError as e:
            raise WriteFailure(str(self.output_dir), e) from e

        staged = StagedManifests(self.output_dir)
        try:
            for name, content in pair.files():
                await staged.add(name, content)
            yield staged
        finally:
            await staged.discard()

    async def commit(self, pair: RenderedManifestPair) -> List[Path]:
        async with self.stage(pair) as staged:
            return await staged.publish()


async def _read_if_exists(path: Path) -> Optional[bytes]:
    if not await exists(path):
        return None
    try:
        async with aiofiles.open(path, mode="rb") as existing:
            return await existing.read()
    except OSError as e:
        raise WriteFailure(str(path), e) from e


async def _restore(replaced: List[Path], previous: Dict[Path, Optional[bytes]]) -> None:
    for target in replaced:
        content = previous.get(target)
        try:
            if content is None:
                await aiofiles.os.remove(target)
            else:
                async with aiofiles.open(target, mode="wb") as restored:
                    await restored.write(content)
        except OSError as e:
            logger.error(f"Could not restore '{target}': {e}")
