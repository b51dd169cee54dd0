from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from loguru import logger

from er_summary.data_processing.data_types import (
    Cardinality,
    ColumnInfo,
    ForeignKey,
    Relationship,
    Table,
)

ForeignKeyLookup = Mapping[Tuple[str, str], ForeignKey]


def build_foreign_key_lookup(foreign_keys: Iterable[ForeignKey]) -> Dict[Tuple[str, str], ForeignKey]:
    """
    Map ``(from_table, to_table)`` to one constraint for that pair.

    When several constraints link the same pair, the one with the smallest
    (constraint name, column) wins regardless of input order.
    """
    lookup: Dict[Tuple[str, str], ForeignKey] = {}
    for fk in sorted(foreign_keys, key=lambda fk: (fk.constraint_name, fk.from_column)):
        key = (fk.from_table, fk.to_table)
        if key in lookup:
            logger.debug(
                "Ignoring additional constraint {} for {} -> {}; using {}",
                fk.constraint_name,
                fk.from_table,
                fk.to_table,
                lookup[key].constraint_name,
            )
            continue
        lookup[key] = fk
    return lookup


def direct_cardinality(
    from_table: str,
    to_table: str,
    fk: ForeignKey,
    column_info: Mapping[str, ColumnInfo],
    schema: str,
) -> Relationship:
    """
    Cardinality of a single FK hop where ``from_table`` holds the FK column.

    The referencing side is bounded by the column's nullability and sole
    uniqueness; the referenced side is always exactly one.
    """

    min_ = "0"
    max_ = "*"
    info = column_info.get(fk.source_column_key)
    if info is None:
        logger.debug("No column info for {}; assuming nullable and non-unique", fk.source_column_key)
    else:
        if not info.is_nullable:
            min_ = "1"
        if info.has_sole_unique_constraint:
            max_ = "1"

    return Relationship(
        from_table=Table(name=from_table, schema=schema),
        to_table=Table(name=to_table, schema=schema),
        from_cardinality=Cardinality(min_, max_),
        to_cardinality=Cardinality.EXACTLY_ONE,
        path=(from_table, to_table),
    )


def path_cardinality(
    path: Sequence[str],
    fk_lookup: ForeignKeyLookup,
    column_info: Mapping[str, ColumnInfo],
    schema: str,
) -> Optional[Relationship]:
    """
    Relationship for a table path given in FK direction.

    Multi-hop paths are not propagated hop by hop; both ends are reported as
    optional-many.
    """

    if len(path) < 2:
        return None

    if len(path) == 2:
        from_table, to_table = path
        fk = fk_lookup.get((from_table, to_table))
        if fk is not None:
            return direct_cardinality(from_table, to_table, fk, column_info, schema)
        fk = fk_lookup.get((to_table, from_table))
        if fk is not None:
            return direct_cardinality(to_table, from_table, fk, column_info, schema).swapped()

    return Relationship(
        from_table=Table(name=path[0], schema=schema),
        to_table=Table(name=path[-1], schema=schema),
        from_cardinality=Cardinality.OPTIONAL_MANY,
        to_cardinality=Cardinality.OPTIONAL_MANY,
        path=tuple(path),
    )


def combine_through_ancestor(
    ancestor: str,
    table_a: str,
    table_b: str,
    path_c_to_a: Sequence[str],
    path_c_to_b: Sequence[str],
    fk_lookup: ForeignKeyLookup,
    column_info: Mapping[str, ColumnInfo],
    schema: str,
) -> Optional[Relationship]:
    """
    Join the half-relationships C->A and C->B into a single A<->B relationship.

    Both sides are optional-many unless every connector row is guaranteed to
    reference both tables, in which case both minimums become one. Maximums
    are never tightened.
    """

    to_a = path_cardinality(path_c_to_a, fk_lookup, column_info, schema)
    to_b = path_cardinality(path_c_to_b, fk_lookup, column_info, schema)
    if to_a is None or to_b is None:
        logger.debug("Connector {} yielded an empty half-path for {}/{}", ancestor, table_a, table_b)
        return None

    min_ = "0"
    if to_a.from_cardinality.min == "1" and to_b.from_cardinality.min == "1":
        min_ = "1"

    full_path = tuple(reversed(path_c_to_a)) + tuple(path_c_to_b[1:])
    return Relationship(
        from_table=Table(name=table_a, schema=schema),
        to_table=Table(name=table_b, schema=schema),
        from_cardinality=Cardinality(min_, "*"),
        to_cardinality=Cardinality(min_, "*"),
        path=full_path,
    )
