import json
from typing import Iterable, Optional

from pydantic import ValidationError

from matchmaker.models.models import AiMatch, ParsedBatch, RejectedEntry
from matchmaker.utils.logging_config import get_logger
from matchmaker.utils.utils import strip_code_fences

logger = get_logger(__name__)


def parse_ai_matches(
    raw: str,
    known_uids: Optional[Iterable[str]] = None,
    known_project_ids: Optional[Iterable[str]] = None,
) -> ParsedBatch:
    """
    Validate a raw model response as a list of pairing objects.

    A response that is not JSON, or is JSON but not a list, makes the whole
    batch unparsable. Inside a list, bad entries are dropped one by one and
    reported in ``rejected``. When ``known_uids``/``known_project_ids`` are
    given, entries pointing outside them are dropped as well.
    """
    try:
        data = json.loads(strip_code_fences(raw))
    except (TypeError, ValueError) as e:
        return ParsedBatch(error=f"Invalid JSON: {e}")

    if not isinstance(data, list):
        return ParsedBatch(error=f"Expected a JSON array, got {type(data).__name__}")

    uids = set(known_uids) if known_uids is not None else None
    project_ids = set(known_project_ids) if known_project_ids is not None else None

    batch = ParsedBatch()
    for entry in data:
        if not isinstance(entry, dict):
            _reject(batch, entry, "entry is not an object")
            continue
        try:
            match = AiMatch(**entry)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
            _reject(batch, entry, f"invalid fields: {fields}")
            continue
        if uids is not None and match.fromUid not in uids:
            _reject(batch, entry, f"unknown fromUid {match.fromUid}")
            continue
        if project_ids is not None and match.toProjectId not in project_ids:
            _reject(batch, entry, f"unknown toProjectId {match.toProjectId}")
            continue
        batch.matches.append(match)

    return batch


def _reject(batch: ParsedBatch, entry, reason: str) -> None:
    logger.warning(f"Invalid match data ({reason}): {entry!r}")
    batch.rejected.append(RejectedEntry(entry=entry, reason=reason))
