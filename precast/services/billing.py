from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)

# Billing stages in the order they are staged and reported
STAGES = ("casted", "dispatched", "erection", "handover")

# Stage names as stored in the ledger vs. keys used in work_order.payment_term
PAYMENT_TERM_KEYS = {"dispatched": "dispatch"}


@dataclass(frozen=True)
class StagedElement:
    """An element that reached a billing stage inside the billing window"""
    element_id: int
    stage: str
    floor_id: Optional[int]
    type_code: str
    volume: float


@dataclass
class InvoiceLine:
    material_id: int
    item_name: str
    stage: str
    volume: float
    unit_rate: float
    tax: float
    multiplier: float
    value: float


def stage_multiplier(payment_terms: Optional[Dict[str, float]], stage: str) -> float:
    """
    Share of the line billed at `stage`, e.g. 50 -> 0.5.
    Missing, unparseable or negative terms bill the full amount.
    """
    key = stage.lower()
    key = PAYMENT_TERM_KEYS.get(key, key)
    if not payment_terms or key not in payment_terms:
        return 1.0
    try:
        pct = float(payment_terms[key])
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric payment term {key}={payment_terms[key]!r}")
        return 1.0
    if pct < 0:
        return 1.0
    return pct / 100.0


def line_value(unit_rate: float, volume: float, multiplier: float, tax: Optional[float]) -> float:
    value = unit_rate * volume * multiplier
    if tax and tax > 0:
        value += value * tax / 100.0
    return value


def material_matches(material, type_code: str, floor_id: Optional[int]) -> bool:
    """Case-insensitive name match, restricted to the material's floors when it lists any"""
    if (material.item_name or "").lower() != (type_code or "").lower():
        return False
    floors = material.floor_id
    if not floors:
        return True
    return floor_id in floors


def aggregate_lines(materials: Iterable, staged: Iterable[StagedElement],
                    payment_terms: Optional[Dict[str, float]] = None) -> List[InvoiceLine]:
    """
    Group staged elements by (material, stage) and price each group.
    An element counts towards every material it matches; unmatched elements produce no line.
    """
    materials = sorted(materials, key=lambda m: m.id)
    volumes: Dict[tuple, float] = {}
    for element in staged:
        for material in materials:
            if material_matches(material, element.type_code, element.floor_id):
                key = (material.id, element.stage)
                volumes[key] = volumes.get(key, 0.0) + (element.volume or 0.0)

    by_id = {material.id: material for material in materials}
    lines = []
    for (material_id, stage), volume in sorted(
        volumes.items(), key=lambda item: (item[0][0], STAGES.index(item[0][1]) if item[0][1] in STAGES else len(STAGES))
    ):
        material = by_id[material_id]
        unit_rate = material.unit_rate or 0.0
        tax = material.tax or 0.0
        multiplier = stage_multiplier(payment_terms, stage)
        lines.append(InvoiceLine(
            material_id=material_id,
            item_name=material.item_name,
            stage=stage,
            volume=volume,
            unit_rate=unit_rate,
            tax=tax,
            multiplier=multiplier,
            value=line_value(unit_rate, volume, multiplier, tax),
        ))
    return lines


def invoice_total(lines: Iterable[InvoiceLine]) -> float:
    return sum(line.value for line in lines)
