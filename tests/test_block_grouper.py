from studyroom.attendance.services.block_grouper import (
    group_slots_by_external_break,
    sort_slots,
)


def slot(start, end, type_, subject=""):
    return {"start_time": start, "end_time": end, "type": type_, "subject": subject}


def test_external_break_splits_day_into_two_blocks():
    slots = [
        slot("09:00", "10:00", "class", "Math"),
        slot("10:00", "12:00", "self_study", "Review"),
        slot("12:00", "14:00", "external", "Lunch"),
        slot("14:00", "18:00", "self_study", "Study"),
    ]

    blocks = group_slots_by_external_break(slots)

    assert len(blocks) == 2
    assert (blocks[0].start_time, blocks[0].end_time) == ("09:00", "12:00")
    assert blocks[0].subjects == ["Math", "Review"]
    assert (blocks[1].start_time, blocks[1].end_time) == ("14:00", "18:00")
    assert blocks[1].subjects == ["Study"]


def test_leading_and_trailing_external_slots_produce_no_empty_blocks():
    slots = [
        slot("08:00", "09:00", "external"),
        slot("09:00", "10:00", "class"),
        slot("10:00", "11:00", "external"),
        slot("11:00", "12:00", "external"),
        slot("12:00", "13:00", "class"),
        slot("13:00", "14:00", "external"),
    ]

    blocks = group_slots_by_external_break(slots)

    assert [len(b.slots) for b in blocks] == [1, 1]
    assert all(b.slots for b in blocks)


def test_day_without_obligations_has_no_blocks():
    assert group_slots_by_external_break([]) == []
    assert group_slots_by_external_break([slot("09:00", "18:00", "external")]) == []


def test_blocks_preserve_every_obligation_slot_in_order():
    slots = [
        slot("09:00", "10:00", "class", "a"),
        slot("10:00", "11:00", "external", "x"),
        slot("11:00", "12:00", "self_study", "b"),
        slot("12:00", "13:00", "class", "c"),
        slot("13:00", "14:00", "external", "y"),
        slot("14:00", "15:00", "class", "d"),
    ]

    blocks = group_slots_by_external_break(slots)
    flattened = [s["subject"] for block in blocks for s in block.slots]

    assert flattened == ["a", "b", "c", "d"]
    for block in blocks:
        assert all(s["type"] != "external" for s in block.slots)


def test_unknown_slot_type_is_dropped_without_splitting():
    slots = [
        slot("09:00", "10:00", "class"),
        slot("10:00", "10:30", "meal"),
        slot("10:30", "12:00", "class"),
    ]

    blocks = group_slots_by_external_break(slots)

    assert len(blocks) == 1
    assert (blocks[0].start_time, blocks[0].end_time) == ("09:00", "12:00")


def test_sort_slots_orders_by_start_time():
    slots = [
        slot("14:00", "18:00", "class"),
        slot("09:00", "12:00", "class"),
        slot("12:00", "14:00", "external"),
    ]

    assert [s["start_time"] for s in sort_slots(slots)] == ["09:00", "12:00", "14:00"]
