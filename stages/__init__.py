"""Stage payload parsing.

Turns the four loosely-shaped stage payloads of an order, and the store's
order and directory records, into typed data.
"""

from stages.parsers import (
    ParsedStages,
    parse_order_stages,
    parse_stage1,
    parse_stage2,
    parse_stage3,
    parse_stage4,
)
from stages.record import (
    parse_driver_record,
    parse_entity_record,
    parse_order_record,
    split_assignment_record,
)

__all__ = [
    "ParsedStages",
    "parse_order_stages",
    "parse_stage1",
    "parse_stage2",
    "parse_stage3",
    "parse_stage4",
    "parse_driver_record",
    "parse_entity_record",
    "parse_order_record",
    "split_assignment_record",
]
