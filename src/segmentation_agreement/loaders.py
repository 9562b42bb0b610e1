"""
Data loading for agreement studies.

Text studies (for gamma) are read from JSON in one of two shapes:

- a shared text with the units of all raters::

    {"text": "so so so", "units": [{"rater": "A", "begin": 0, "end": 2}, ...]}

- one annotated text per rater::

    {"texts": [{"rater": "A", "text": "...", "units": [{"begin": 0, "end": 2}]}, ...]}

Units may carry ``"text"`` (defaults to the covered slice) and ``"features"``.
Without a raw ``"text"`` the units lie on a placeholder text.

Continuum studies (for alpha) are read from:
- JSON files: {"begin", "length", "raters", "units": [...]}
- JSONL files (one unit object per line)
- CSV files with the header ``rater,begin,length,category``
"""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Hashable, List, Optional, Union

from segmentation_agreement.models import (
    PLACEHOLDER_CHAR,
    AnnotatedText,
    Continuum,
    ContinuumStudy,
    ContinuumUnit,
    Coordinate,
    Rater,
    TextSpan,
    TextStudy,
)

logger = logging.getLogger(__name__)

CSV_FIELDS = ("rater", "begin", "length", "category")


# =============================================================================
# Text Studies
# =============================================================================


def load_text_study(path: Union[str, Path]) -> Union[TextStudy, List[AnnotatedText]]:
    """
    Load a text study from a JSON file.

    The raw ``"text"`` may be omitted for studies over an abstract interval;
    a placeholder text is used instead.

    Args:
        path: JSON file in the shared-text or per-rater-text shape

    Returns:
        A TextStudy for the shared-text shape, otherwise one AnnotatedText
        per entry of ``texts``

    Raises:
        ValueError: If the file is not valid JSON, misses required fields or
            holds invalid spans
    """
    file_path = Path(path)
    data = _read_json(file_path)

    if not isinstance(data, dict):
        raise ValueError(f"{file_path.name}: expected a JSON object at the root")
    if not {"text", "texts", "units"} & data.keys():
        raise ValueError(f"{file_path.name}: expected 'text', 'units' or 'texts'")

    raters: Dict[str, Rater] = {}

    try:
        if "texts" in data:
            texts = [
                _parse_annotated_text(entry, raters, file_path.name) for entry in data["texts"]
            ]
            logger.info(f"Loaded {len(texts)} annotated text(s) from {file_path.name}")
            return texts

        text = data.get("text")
        units = [_parse_text_unit(entry, text, raters, None) for entry in data.get("units", [])]
        study = TextStudy(text, units)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"{file_path.name}: malformed text study ({e!r})") from e

    logger.info(
        f"Loaded text study from {file_path.name}: {len(units)} unit(s), "
        f"{study.rater_count} rater(s)"
    )
    return study


def _parse_annotated_text(
    entry: Dict[str, Any], raters: Dict[str, Rater], source: str
) -> AnnotatedText:
    text = entry.get("text")
    rater_name = entry.get("rater")
    units = [_parse_text_unit(unit, text, raters, rater_name) for unit in entry.get("units", [])]
    if not units:
        logger.warning(f"{source}: text of rater {rater_name!r} has no units")
    return AnnotatedText(text, units)


def _get_rater(name: Any, raters: Dict[str, Rater]) -> Rater:
    key = str(name)
    if key not in raters:
        raters[key] = Rater(key, len(raters))
    return raters[key]


def _parse_text_unit(
    entry: Dict[str, Any],
    text: Optional[str],
    raters: Dict[str, Rater],
    default_rater: Optional[str],
) -> TextSpan:
    rater_name = entry.get("rater", default_rater)
    if rater_name is None:
        raise KeyError("rater")

    begin = int(entry["begin"])
    end = int(entry["end"])
    covered = text[begin:end] if text is not None else PLACEHOLDER_CHAR * max(end - begin, 0)
    return TextSpan(
        rater=_get_rater(rater_name, raters),
        begin=begin,
        end=end,
        features=entry.get("features") or (),
        text=entry.get("text", covered),
    )


# =============================================================================
# Continuum Studies
# =============================================================================


def load_continuum_study(
    path: Union[str, Path],
    rater_count: Optional[int] = None,
    begin: Optional[Coordinate] = None,
    length: Optional[Coordinate] = None,
) -> ContinuumStudy:
    """
    Load a unitizing study from a JSON, JSONL or CSV file.

    Arguments take precedence over values stored in a JSON file. Values
    missing from both are inferred from the units: the continuum begins at 0
    (or at the lowest unit begin, if that is negative) and ends at the last
    unit end; the rater count is the number of distinct raters.

    Args:
        path: Study file
        rater_count: Number of raters
        begin: Continuum begin
        length: Continuum length

    Returns:
        The loaded ContinuumStudy

    Raises:
        ValueError: If the file is malformed or of an unsupported type

    Example:
        >>> study = load_continuum_study("data/study.csv", rater_count=2, length=24)
    """
    file_path = Path(path)
    suffix = file_path.suffix.lower()

    if suffix == ".json":
        data = _read_json(file_path)
        if isinstance(data, list):
            data = {"units": data}
        if not isinstance(data, dict):
            raise ValueError(f"{file_path.name}: expected a JSON object or array at the root")
        records = data.get("units", [])
        stored_raters = data.get("raters")
        if rater_count is None and isinstance(stored_raters, int):
            rater_count = stored_raters
        begin = data.get("begin") if begin is None else begin
        length = data.get("length") if length is None else length
    elif suffix == ".jsonl":
        records = _read_jsonl(file_path)
    elif suffix == ".csv":
        records = _read_csv(file_path)
    else:
        raise ValueError(f"{file_path.name}: unsupported file type {suffix!r}")

    try:
        units = _parse_continuum_units(records)
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"{file_path.name}: malformed unit ({e})") from e

    if begin is None:
        begin = min([0] + [u.begin for u in units])
    if length is None:
        if not units:
            raise ValueError(f"{file_path.name}: continuum length is required for an empty study")
        length = max(u.end for u in units) - begin
    if rater_count is None:
        rater_count = max((u.rater for u in units), default=1) + 1

    try:
        study = ContinuumStudy(rater_count, Continuum(begin, length), units)
    except ValueError as e:
        raise ValueError(f"{file_path.name}: {e}") from e

    logger.info(
        f"Loaded continuum study from {file_path.name}: {study.unit_count} unit(s), "
        f"{study.rater_count} rater(s), {len(study.categories)} category(ies)"
    )
    return study


def _parse_continuum_units(records: List[Dict[str, Any]]) -> List[ContinuumUnit]:
    rater_index: Dict[str, int] = {}
    units: List[ContinuumUnit] = []

    # Integer raters are indices; named raters are numbered by first appearance
    named = any(not _is_integer(record["rater"]) for record in records)

    for record in records:
        rater = record["rater"]
        if named:
            index = rater_index.setdefault(str(rater), len(rater_index))
        else:
            index = int(rater)

        units.append(
            ContinuumUnit(
                begin=_number(record["begin"]),
                length=_number(record["length"]),
                rater=index,
                category=_category(record["category"]),
            )
        )

    return units


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().lstrip("-").isdigit()


def _number(value: Any) -> Coordinate:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return float(text)


def _category(value: Any) -> Hashable:
    # JSON arrays become tuples so that they can serve as labels
    if isinstance(value, list):
        return tuple(value)
    return value


# =============================================================================
# File Readers
# =============================================================================


def _read_json(file_path: Path) -> Any:
    with open(file_path, "r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{file_path.name}: JSON parse error: {e}") from e


def _read_jsonl(file_path: Path) -> List[Dict[str, Any]]:
    records: List[Dict[str, Any]] = []

    with open(file_path, "r", encoding="utf-8") as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"{file_path.name}: JSON parse error at line {line_num}: {e}"
                ) from e

    return records


def _read_csv(file_path: Path) -> List[Dict[str, Any]]:
    with open(file_path, "r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        missing = [name for name in CSV_FIELDS if name not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{file_path.name}: missing CSV column(s): {', '.join(missing)}")
        return [dict(row) for row in reader]
