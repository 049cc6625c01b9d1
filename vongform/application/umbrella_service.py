import logging
from typing import Iterable

from vongform.application.registry import load_overrides, load_registry, persist_registry, rollback_registry
from vongform.application.renderer import ManifestRenderer
from vongform.domain.exceptions import WriteFailure
from vongform.domain.models import SyncResult
from vongform.domain.mutations import Mutation, apply_all
from vongform.domain.store import StateStore
from vongform.infrastructure.writer import ManifestWriter

logger = logging.getLogger(__name__)


class UmbrellaService:
    """
    Service responsible for one vongform run: reconcile the requested mutations
    against the stored registry, persist the result and emit the umbrella chart.

    Anything that can fail before the store is touched (loading, rendering,
    writing the temporary files) happens first, and the manifests are only
    renamed into place once the store accepted every change. A failed store
    write or rename puts the already-written keys back to their previous
    versions, so a failed run leaves both the store and the manifests as they were.
    """

    def __init__(
            self,
            store: StateStore,
            renderer: ManifestRenderer,
            writer: ManifestWriter,
            prefix: str = "umbrella",
            dry_run: bool = False,
    ):
        self.store = store
        self.renderer = renderer
        self.writer = writer
        self.prefix = prefix
        self.dry_run = dry_run

    async def sync(self, mutations: Iterable[Mutation] = ()) -> SyncResult:
        mutations = list(mutations)
        current = await load_registry(self.store, self.prefix)
        updated, changes = apply_all(current, mutations)

        if mutations and not changes:
            logger.info("Requested versions already match the stored registry.")
        for change in changes:
            logger.info(f"{'Would apply' if self.dry_run else 'Applying'}: {change.describe()}.")

        overrides = await load_overrides(self.store, self.prefix, updated.names())
        pair = self.renderer.render(updated, overrides)

        if self.dry_run:
            logger.info(f"Dry run, nothing persisted. Rendered requirements:\n{pair.requirements.decode('utf-8')}")
            return SyncResult(registry=updated, changes=changes, output_dir=self.writer.output_dir)

        async with self.writer.stage(pair) as staged:
            persisted = await persist_registry(self.store, self.prefix, current, updated)
            try:
                await staged.publish()
            except WriteFailure:
                await rollback_registry(self.store, self.prefix, current, sorted(persisted))
                raise

        logger.info(f"Umbrella chart with {len(updated)} dependencies written to {self.writer.output_dir}.")
        return SyncResult(registry=updated, changes=changes, output_dir=self.writer.output_dir, published=True)
