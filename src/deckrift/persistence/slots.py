from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Mapping, MutableMapping, Optional

from .errors import SaveParseError
from .models import SlotSummary
from .storage import SAVE_SLOTS_KEY, KeyValueStore

logger = logging.getLogger(__name__)


def new_slot_id() -> str:
    return f"slot_{uuid.uuid4().hex[:12]}"


class SlotRegistry:
    """Slot id -> SlotSummary mapping kept under the ``saveSlots`` key.

    Entries are always derived from a document at write time and never edited
    on their own. A slot's identity is the ``slotId`` recorded on its document
    when the slot was created; documents written before slot ids existed fall
    back to matching by ``saveName``.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    def all(self) -> Dict[str, SlotSummary]:
        try:
            text = self._store.get(SAVE_SLOTS_KEY)
            if not text:
                return {}
            raw = json.loads(text)
            return {slot_id: SlotSummary.from_dict(entry) for slot_id, entry in raw.items()}
        except (SaveParseError, ValueError, TypeError, KeyError, AttributeError) as exc:
            logger.warning("Slot registry unreadable; starting empty: %s", exc)
            return {}

    def get(self, slot_id: str) -> Optional[SlotSummary]:
        return self.all().get(slot_id)

    def claim(self, document: MutableMapping[str, Any], fresh: bool = False) -> str:
        """Pick the slot id for ``document`` and record it on the document.

        Nothing is written; call :meth:`record` once the document itself has
        been stored. With ``fresh`` a new id is always issued.
        """
        slot_id = None if fresh else self._resolve(document)
        if slot_id is None:
            slot_id = new_slot_id()
        document["slotId"] = slot_id
        return slot_id

    def record(self, document: Mapping[str, Any]) -> SlotSummary:
        """Write the summary of ``document`` under its ``slotId``."""
        slot_id = document["slotId"]
        slots = self.all()
        summary = SlotSummary.from_document(slot_id, document)
        slots[slot_id] = summary
        self._write(slots)
        logger.debug("Slot %s -> %s", slot_id, summary)
        return summary

    def add(self, document: MutableMapping[str, Any]) -> SlotSummary:
        """Register ``document`` under a fresh slot id."""
        self.claim(document, fresh=True)
        return self.record(document)

    def update(self, document: MutableMapping[str, Any]) -> SlotSummary:
        """Refresh the slot that belongs to ``document``, creating one if none does."""
        self.claim(document)
        return self.record(document)

    def _resolve(self, document: Mapping[str, Any]) -> Optional[str]:
        slots = self.all()
        slot_id = document.get("slotId")
        if slot_id in slots:
            return slot_id
        return next(
            (sid for sid, slot in slots.items() if slot.name == document.get("saveName")),
            None,
        )

    def delete(self, slot_id: str) -> bool:
        """Remove a slot. Returns whether it existed; a missing id is not an error."""
        slots = self.all()
        existed = slots.pop(slot_id, None) is not None
        self._write(slots)
        return existed

    def clear(self) -> None:
        self._store.delete(SAVE_SLOTS_KEY)

    def _write(self, slots: Dict[str, SlotSummary]) -> None:
        payload = {slot_id: slot.to_dict() for slot_id, slot in slots.items()}
        self._store.set(SAVE_SLOTS_KEY, json.dumps(payload))
