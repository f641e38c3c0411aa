"""
Mutation Protocol
=================
Turns user intents (draw, edit, delete, import) into store calls and
finishes with a full viewport re-fetch: the store's answer, not any
local optimistic state, is what ends up rendered.

Batches
-------
Edits and deletes coming from the drawing tool are batches.  Layers
without a server id are skipped without a request.  The remaining
requests are sent one at a time; the first failure stops the batch and
produces a single error toast.  Requests already sent stay applied, so
a failed batch of N can leave fewer than N changes in the store.  A
re-fetch follows whenever at least one request succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import partial

from geosync.client.api import FeatureApiClient, FeatureApiError
from geosync.client.geocode import ReverseGeocoder, coordinate_label
from geosync.client.sync import SyncController
from geosync.client.view import LayerHandle, NameDescription, NamePrompt

logger = logging.getLogger(__name__)


@dataclass
class MutationOutcome:
    """What a mutation did, for callers and tests."""

    sent: list[str] = field(default_factory=list)
    completed: int = 0
    skipped: int = 0
    error: str | None = None
    cancelled: bool = False
    created_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled

    @property
    def noop(self) -> bool:
        return not self.sent and self.error is None


class MutationProtocol:
    def __init__(
        self,
        api: FeatureApiClient,
        sync: SyncController,
        prompt: NamePrompt,
        geocoder: ReverseGeocoder | None = None,
    ) -> None:
        self.api = api
        self.sync = sync
        self.prompt = prompt
        self.geocoder = geocoder
        self.view = sync.view
        self.reconciler = sync.reconciler

    # ── Create ────────────────────────────────────────────────

    async def create_drawn(self, geometry: dict) -> MutationOutcome:
        """
        The user finished drawing ``geometry``.  Ask for a name; on
        cancel the drawing is thrown away, on confirm it is created and
        the layer is tagged with the id the store returns.
        """
        handle = self.reconciler.register_drawn(geometry)
        answer = await self.prompt.ask()
        if answer is None:
            self.reconciler.discard(handle)
            return MutationOutcome(cancelled=True)
        return await self._create(geometry, answer, handle)

    async def create_at_point(self, lat: float, lon: float) -> MutationOutcome:
        """Create a Point where the map was clicked, named after the place."""
        if self.geocoder is not None:
            label = await self.geocoder.label(lat, lon)
        else:
            label = coordinate_label(lat, lon)
        answer = await self.prompt.ask(label, "")
        if answer is None:
            return MutationOutcome(cancelled=True)
        geometry = {"type": "Point", "coordinates": [lon, lat]}
        return await self._create(geometry, answer, None)

    async def _create(
        self,
        geometry: dict,
        answer: NameDescription,
        handle: LayerHandle | None,
    ) -> MutationOutcome:
        outcome = MutationOutcome()
        self.view.set_spinner(True)
        try:
            fid = await self.api.create(
                answer.name.strip(), answer.description.strip(), geometry
            )
        except FeatureApiError as exc:
            if handle is not None:
                self.reconciler.discard(handle)
            outcome.error = str(exc)
            logger.warning("Create failed: %s", exc)
            self.view.show_toast(f"Save error: {exc}", 3.5)
            return outcome
        finally:
            self.view.set_spinner(False)

        outcome.completed = 1
        outcome.created_id = fid
        if handle is not None:
            if fid:
                self.reconciler.adopt(handle, fid)
            else:
                self.reconciler.discard(handle)
        logger.info("Created feature %s", fid)
        self.view.show_toast("Saved")
        await self.sync.refresh()
        return outcome

    # ── Edit ──────────────────────────────────────────────────

    async def edit_layers(self, edits: Mapping[LayerHandle, dict]) -> MutationOutcome:
        """Geometry edits from the drawing tool, keyed by layer handle."""
        ops = []
        skipped = 0
        for handle, geometry in edits.items():
            fid = self.reconciler.server_id_for(handle)
            if fid is None:
                skipped += 1
                continue
            ops.append((fid, partial(self.api.update, fid, geojson=geometry)))

        if not ops:
            self.view.show_toast("No server-backed features edited")
            return MutationOutcome(skipped=skipped)
        return await self._run_batch(ops, "Updated", "Update error", skipped=skipped)

    async def edit_inline(self, fid: str, name: str, description: str) -> MutationOutcome:
        if not name or not name.strip():
            self.view.show_toast("Name is required")
            return MutationOutcome(error="Name is required")
        ops = [(fid, partial(self.api.update, fid, name=name, description=description))]
        return await self._run_batch(ops, "Updated", "Update error")

    # ── Delete ────────────────────────────────────────────────

    async def delete_feature(self, fid: str) -> MutationOutcome:
        ops = [(fid, partial(self.api.delete, fid))]
        return await self._run_batch(
            ops, "Deleted", "Delete error", after=self.reconciler.forget
        )

    async def delete_layers(self, handles: Iterable[LayerHandle]) -> MutationOutcome:
        ops = []
        skipped = 0
        for handle in handles:
            fid = self.reconciler.server_id_for(handle)
            if fid is None:
                skipped += 1
                continue
            ops.append((fid, partial(self.api.delete, fid)))

        if not ops:
            self.view.show_toast("No server-backed features removed")
            return MutationOutcome(skipped=skipped)
        return await self._run_batch(
            ops, "Deleted", "Delete error", skipped=skipped, after=self.reconciler.forget
        )

    # ── Import ────────────────────────────────────────────────

    async def import_features(self, features: list[dict]) -> MutationOutcome:
        """Create every feature of an imported collection, in order."""
        ops = []
        for feature in features:
            props = feature.get("properties") or {}
            extras = {
                k: v for k, v in props.items()
                if k not in ("id", "name", "description", "createdAt", "updatedAt")
            }
            ops.append((
                str(props.get("name") or "import"),
                partial(
                    self.api.create,
                    str(props.get("name") or "import"),
                    str(props.get("description") or ""),
                    feature.get("geometry"),
                    extras or None,
                ),
            ))
        if not ops:
            self.view.show_toast("Nothing to import")
            return MutationOutcome()
        return await self._run_batch(ops, "Import complete", "Import error")

    # ── Batch runner ──────────────────────────────────────────

    async def _run_batch(
        self,
        ops: list[tuple[str, Callable[[], Awaitable[object]]]],
        success: str,
        failure: str,
        skipped: int = 0,
        after: Callable[[str], None] | None = None,
    ) -> MutationOutcome:
        outcome = MutationOutcome(skipped=skipped)
        self.view.set_spinner(True)
        try:
            for key, call in ops:
                outcome.sent.append(key)
                await call()
                outcome.completed += 1
                if after is not None:
                    after(key)
            self.view.show_toast(success)
        except FeatureApiError as exc:
            outcome.error = str(exc)
            logger.warning(
                "%s after %d of %d requests: %s", failure, outcome.completed, len(ops), exc
            )
            self.view.show_toast(f"{failure}: {exc}", 3.5)
        finally:
            self.view.set_spinner(False)

        if outcome.completed:
            await self.sync.refresh()
        return outcome
