from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import SaveValidationError

# Bump when the document layout changes; older versions need a migration
SAVE_VERSION = "1.0.0"
SUPPORTED_VERSIONS = frozenset({SAVE_VERSION})

DEFAULT_SAVE_NAME = "Rift Walker"
IMPORTED_SAVE_NAME = "Imported Save"

CARD_SUITS = ("spades", "hearts", "diamonds", "clubs")
CARD_VALUES = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
JOKER = "\U0001d541"
STAT_NAMES = ("power", "will", "craft", "focus")


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def next_timestamp(previous: Any, now: Optional[int] = None) -> int:
    """Return a stamp that never goes backwards relative to ``previous``."""
    current = now_ms() if now is None else now
    if isinstance(previous, (int, float)) and not isinstance(previous, bool):
        return max(current, int(previous))
    return current


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

def _stat_block(minimum: Optional[int] = None) -> Dict[str, Dict[str, Any]]:
    field: Dict[str, Any] = {"required": True, "type": "number"}
    if minimum is not None:
        field["min"] = minimum
    return {name: dict(field) for name in STAT_NAMES}


TILE_SCHEMA = {
    "x": {"required": True, "type": "number"},
    "y": {"required": True, "type": "number"},
    "visited": {"type": "boolean"},
    "suit": {"required": True, "type": "string", "enum": CARD_SUITS + ("joker",)},
    "value": {"required": True, "type": "string"},
    "type": {"type": "string"},
}

MAP_SCHEMA = {
    "tiles": {"required": True, "array": True, "items": TILE_SCHEMA},
    "width": {"required": True, "type": "number", "min": 0},
    "height": {"required": True, "type": "number", "min": 0},
}

LOCATION_SCHEMA = {
    "realm": {"required": True, "type": "number", "min": 1, "max": 4},
    "level": {"required": True, "type": "number", "min": 1},
    "mapX": {"required": True, "type": "number", "min": 0},
    "mapY": {"required": True, "type": "number", "min": 0},
}

FIGHT_STATUS_SCHEMA = {
    "inBattle": {"required": True, "type": "boolean"},
    "playerHand": {"required": True, "array": True},
    "playerDeck": {"required": True, "array": True},
    "playerDiscard": {"required": True, "array": True},
    "enemyHand": {"required": True, "array": True},
    "enemyDeck": {"required": True, "array": True},
    "enemyDiscard": {"required": True, "array": True},
    "enemyStats": {"required": True, "object": True},
    "enemyHealth": {"required": True, "type": "number"},
    "enemyMaxHealth": {"required": True, "type": "number"},
    "turn": {"required": True, "type": "string", "enum": ("player", "enemy")},
}

EVENT_STATUS_SCHEMA = {
    "currentEvent": {"type": "string"},
    "drawnCards": {"required": True, "array": True},
    "eventStep": {"required": True, "type": "number"},
    "eventPhase": {"required": True, "type": "string"},
}

EQUIPMENT_ITEM_SCHEMA = {
    "type": {"required": True, "type": "string"},
    "value": {"required": True, "type": "string"},
    "equipped": {"type": "boolean"},
}

RUN_DATA_SCHEMA = {
    "version": {"required": True, "type": "string"},
    "timestamp": {"required": True, "type": "number"},
    "map": {"required": True, "object": True, "schema": MAP_SCHEMA},
    "location": {"required": True, "object": True, "schema": LOCATION_SCHEMA},
    "fightStatus": {"required": True, "object": True, "schema": FIGHT_STATUS_SCHEMA},
    "eventStatus": {"required": True, "object": True, "schema": EVENT_STATUS_SCHEMA},
    "statModifiers": {"required": True, "object": True, "schema": _stat_block()},
    "equipment": {"required": True, "array": True, "items": EQUIPMENT_ITEM_SCHEMA},
    "playerDeck": {"required": True, "array": True},
}

GAME_DATA_SCHEMA = {
    "version": {"required": True, "type": "string"},
    "timestamp": {"required": True, "type": "number"},
    "health": {"required": True, "type": "number", "min": 0},
    "maxHealth": {"required": True, "type": "number", "min": 1},
    "currency": {"required": True, "type": "number", "min": 0},
    "stats": {"required": True, "object": True, "schema": _stat_block(minimum=1)},
    "statXP": {"required": True, "object": True, "schema": _stat_block(minimum=0)},
    "unlockedUpgrades": {"required": True, "array": True, "items": "string"},
    "unlockedEquipment": {"required": True, "array": True, "items": "string"},
}

SAVE_DATA_SCHEMA = {
    "version": {"required": True, "type": "string"},
    "timestamp": {"required": True, "type": "number"},
    "saveName": {"required": True, "type": "string"},
    "slotId": {"type": "string"},
    "runData": {"required": True, "object": True, "schema": RUN_DATA_SCHEMA},
    "gameData": {"required": True, "object": True, "schema": GAME_DATA_SCHEMA},
}


# ---------------------------------------------------------------------------
# Default construction
# ---------------------------------------------------------------------------

def standard_deck() -> List[Dict[str, str]]:
    """A fresh, unshuffled 52-card deck."""
    return [
        {"value": value, "suit": suit, "display": f"{value}{suit}", "code": f"{value}{suit}"}
        for suit in CARD_SUITS
        for value in CARD_VALUES
    ]


def starting_map() -> Dict[str, Any]:
    row = [("joker", JOKER, "player-start")]
    row += [(suit, value, "standard") for suit, value in
            (("hearts", "A"), ("diamonds", "2"), ("clubs", "A"), ("spades", "2"), ("hearts", "2"))]
    row.append(("joker", JOKER, "joker"))
    tiles = [
        {"x": x, "y": 0, "visited": False, "suit": suit, "value": value, "type": kind}
        for x, (suit, value, kind) in enumerate(row)
    ]
    return {"tiles": tiles, "width": len(tiles), "height": 1}


def create_fight_status(**options: Any) -> Dict[str, Any]:
    status: Dict[str, Any] = {
        "inBattle": False,
        "playerHand": [],
        "playerDeck": [],
        "playerDiscard": [],
        "enemyHand": [],
        "enemyDeck": [],
        "enemyDiscard": [],
        "enemyStats": {},
        "enemyHealth": 0,
        "enemyMaxHealth": 0,
        "turn": "player",
    }
    status.update(options)
    return status


def create_default_run_data(timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Run state for a brand-new run: realm 1, level 1, standard deck."""
    return {
        "version": SAVE_VERSION,
        "timestamp": now_ms() if timestamp is None else timestamp,
        "map": starting_map(),
        "location": {"realm": 1, "level": 1, "mapX": 0, "mapY": 0},
        "fightStatus": create_fight_status(),
        "eventStatus": {"currentEvent": None, "drawnCards": [], "eventStep": 0, "eventPhase": "start"},
        "statModifiers": {name: 0 for name in STAT_NAMES},
        "equipment": [],
        "playerDeck": standard_deck(),
    }


def create_default_game_data(timestamp: Optional[int] = None) -> Dict[str, Any]:
    return {
        "version": SAVE_VERSION,
        "timestamp": now_ms() if timestamp is None else timestamp,
        "health": 100,
        "maxHealth": 100,
        "currency": 0,
        "stats": {name: 1 for name in STAT_NAMES},
        "statXP": {name: 0 for name in STAT_NAMES},
        "unlockedUpgrades": [],
        "unlockedEquipment": [],
    }


def create_default_save(save_name: str = DEFAULT_SAVE_NAME, timestamp: Optional[int] = None) -> Dict[str, Any]:
    """Build the document a new game starts from."""
    ts = now_ms() if timestamp is None else timestamp
    return {
        "version": SAVE_VERSION,
        "timestamp": ts,
        "saveName": save_name,
        "runData": create_default_run_data(ts),
        "gameData": create_default_game_data(ts),
    }


# ---------------------------------------------------------------------------
# Slot summaries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SlotSummary:
    """Read-only projection of a document, keyed by slot id in the registry."""

    id: str
    name: str
    timestamp: int
    realm: int
    level: int

    @classmethod
    def from_document(cls, slot_id: str, document: Mapping[str, Any]) -> "SlotSummary":
        try:
            location = document["runData"]["location"]
            return cls(
                id=slot_id,
                name=document["saveName"],
                timestamp=document["timestamp"],
                realm=location["realm"],
                level=location["level"],
            )
        except (KeyError, TypeError) as exc:
            raise SaveValidationError([f"Cannot summarize document: missing {exc}"]) from exc

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SlotSummary":
        return SlotSummary(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            timestamp=int(data.get("timestamp", 0)),
            realm=int(data.get("realm", 1)),
            level=int(data.get("level", 1)),
        )
