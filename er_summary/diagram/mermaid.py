"""Mermaid ``erDiagram`` rendering for tables and inferred relationships."""

from __future__ import annotations

from typing import Dict, Iterable, List

from loguru import logger

from er_summary.data_processing.data_types import Cardinality, Relationship, Table

_CARDINALITY_SYMBOLS: Dict[str, str] = {
    "01": "|o",
    "11": "||",
    "0*": "}o",
    "1*": "}|",
}
_DEFAULT_SYMBOL = "||"

_BRACE_SWAP = str.maketrans({"{": "}", "}": "{"})

_DATA_TYPE_GROUPS = (
    ("int", ("int",)),
    ("string", ("char", "text")),
    ("datetime", ("timestamp", "date", "time")),
    ("boolean", ("bool",)),
    ("float", ("numeric", "decimal", "real", "double")),
)


def data_type_to_mermaid(pg_type: str) -> str:
    lowered = (pg_type or "").lower()
    for mermaid_type, fragments in _DATA_TYPE_GROUPS:
        if any(fragment in lowered for fragment in fragments):
            return mermaid_type
    return pg_type


def get_cardinality_symbol(cardinality: Cardinality) -> str:
    """Left-hand Mermaid crow's foot symbol for a cardinality."""
    symbol = _CARDINALITY_SYMBOLS.get(cardinality.min + cardinality.max)
    if symbol is None:
        logger.warning(
            "Unexpected cardinality: min={}, max={}; rendering as exactly one",
            cardinality.min,
            cardinality.max,
        )
        return _DEFAULT_SYMBOL
    return symbol


def reverse_symbol(symbol: str) -> str:
    """Mirror a symbol for the right-hand side: reverse it, then swap braces."""
    return symbol[::-1].translate(_BRACE_SWAP)


def get_mermaid_relation_type(from_cardinality: Cardinality, to_cardinality: Cardinality) -> str:
    return (
        get_cardinality_symbol(from_cardinality)
        + "--"
        + reverse_symbol(get_cardinality_symbol(to_cardinality))
    )


def _key_indicator(is_primary_key: bool, is_foreign_key: bool) -> str:
    if is_primary_key and is_foreign_key:
        return "PK,FK"
    if is_primary_key:
        return "PK"
    if is_foreign_key:
        return "FK"
    return ""


def _relationship_label(relationship: Relationship) -> str:
    intermediates = relationship.intermediate_tables
    if not intermediates:
        return ""
    return "via " + ", ".join(intermediates)


def generate_mermaid_diagram(
    tables: Iterable[Table],
    relationships: Iterable[Relationship],
    command_line: str = "",
) -> str:
    lines: List[str] = [
        "%%{init: {'theme':'neutral'}}%%",
        "%% Generated by er-summary",
        f"%% Command: {command_line}",
        "",
        "erDiagram",
    ]

    for table in tables:
        lines.append(f"    {table.name} {{")
        for column in table.columns:
            entry = f"{data_type_to_mermaid(column.data_type)} {column.name}"
            indicator = _key_indicator(column.is_primary_key, column.is_foreign_key)
            lines.append(f"        {entry} {indicator}".rstrip())
        lines.append("    }")

    for relationship in relationships:
        relation_type = get_mermaid_relation_type(
            relationship.from_cardinality, relationship.to_cardinality
        )
        lines.append(
            f'    {relationship.from_table.name} {relation_type} '
            f'{relationship.to_table.name} : "{_relationship_label(relationship)}"'
        )

    return "\n".join(lines) + "\n"
