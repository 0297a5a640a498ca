"""Resolve the agenda/practice/motive ids matching the searched appointment type."""

from __future__ import annotations

from typing import Callable, Set, Union

import structlog

from .models import BookingMetadata, ResolvedIdentifierSet

LOGGER = structlog.get_logger(__name__)

MotivePredicate = Callable[[str], bool]


def motive_filter(name: str) -> bool:
    """
    Match "1st dose, Pfizer" motive labels.

    The literal "19" (as in COVID19) is removed first so that it cannot satisfy
    the dose digit on its own.
    """
    name = name.replace("19", "").lower()
    return "1" in name and "pfizer" in name


def resolve(
    metadata: BookingMetadata,
    practice_id_hint: Union[int, str],
    name_predicate: MotivePredicate = motive_filter,
) -> ResolvedIdentifierSet:
    """Return the ids whose agendas serve a matching motive at the hinted practice."""
    # Keys compare as written: "05" or " 5" never stand for practice 5.
    hint = str(practice_id_hint)
    if not (hint.isascii() and hint.isdigit()) or str(int(hint)) != hint:
        LOGGER.warning("motives.practice_hint_invalid", practice_id_hint=practice_id_hint)
        return ResolvedIdentifierSet()
    practice_id = int(hint)

    matched: Set[int] = set()
    for motive in metadata.data.visit_motives:
        if name_predicate(motive.name):
            LOGGER.debug("motives.matched", motive_id=motive.id, name=motive.name)
            matched.add(motive.id)

    agenda_ids: Set[int] = set()
    practice_ids: Set[int] = set()
    visit_motive_ids: Set[int] = set()

    for agenda in metadata.data.agendas:
        served = agenda.visit_motive_ids_by_practice_id.get(practice_id)
        if served is None:
            continue
        kept = matched.intersection(served)
        if not kept:
            continue
        agenda_ids.add(agenda.id)
        practice_ids.add(practice_id)
        visit_motive_ids.update(kept)

    resolved = ResolvedIdentifierSet(
        agenda_ids=frozenset(agenda_ids),
        practice_ids=frozenset(practice_ids),
        visit_motive_ids=frozenset(visit_motive_ids),
    )
    LOGGER.info(
        "motives.resolved",
        agenda_ids=resolved.agenda_param,
        practice_ids=resolved.practice_param,
        visit_motive_ids=resolved.visit_motive_param,
    )
    return resolved
