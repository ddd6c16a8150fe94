"""
Block Grouper - splits one day's time slots into continuous study blocks.

An ``external`` slot (an excusable break spent outside) ends the current
block and belongs to no block. ``class`` and ``self_study`` slots are
obligations and accumulate into blocks.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping

SLOT_EXTERNAL = "external"
OBLIGATION_SLOT_TYPES = ("class", "self_study")


@dataclass
class ContinuousBlock:
    slots: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def start_time(self) -> str:
        return self.slots[0]["start_time"]

    @property
    def end_time(self) -> str:
        return self.slots[-1]["end_time"]

    @property
    def subjects(self) -> List[str]:
        return [slot.get("subject") or "" for slot in self.slots]


def sort_slots(slots: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Ascending by start time; zero-padded HH:mm sorts chronologically"""
    return sorted((dict(slot) for slot in slots), key=lambda slot: slot["start_time"])


def group_slots_by_external_break(
    slots: Iterable[Mapping[str, Any]],
) -> List[ContinuousBlock]:
    """
    Group already sorted slots into blocks.

    Returns an empty list when the day has no obligation slots. Slot types
    other than the three known ones are dropped without splitting a block.
    """
    blocks: List[ContinuousBlock] = []
    current: List[Dict[str, Any]] = []

    for slot in slots:
        slot_type = slot.get("type")
        if slot_type == SLOT_EXTERNAL:
            if current:
                blocks.append(ContinuousBlock(slots=current))
                current = []
        elif slot_type in OBLIGATION_SLOT_TYPES:
            current.append(dict(slot))

    if current:
        blocks.append(ContinuousBlock(slots=current))

    return blocks
