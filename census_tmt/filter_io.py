import json
import logging
from pathlib import Path
from typing import Union

import toml

from .filter import Filter, FilterSerializationError
from .filter_rules import parse_rules, format_rules

logger = logging.getLogger(__name__)


def _get_format(path: Union[str, Path]) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in (".json", ".toml"):
        return suffix[1:]
    return "rules"


def load_filter(path: Union[str, Path]) -> Filter:
    """Reads a Filter from a file.

    The format is determined by the file extension: .json and .toml files
    contain filter documents as produced by Filter.to_dict, any other
    extension is read as filter rule text.

    Raises:
        FileNotFoundError: if the file does not exist.
        RuleParseError: if the rule text is invalid.
        FilterSerializationError: if the filter document is invalid.
    """
    if not Path(path).is_file():
        raise FileNotFoundError(f"Could not find filter file {path}")

    file_format = _get_format(path)
    logger.info(f"Reading filter from {path}")
    with open(path, "r", encoding="utf-8") as f:
        if file_format == "json":
            try:
                document = json.load(f)
            except json.JSONDecodeError as e:
                raise FilterSerializationError(f"Invalid JSON in {path}: {e}")
        elif file_format == "toml":
            try:
                document = toml.load(f)
            except toml.TomlDecodeError as e:
                raise FilterSerializationError(f"Invalid TOML in {path}: {e}")
        else:
            return parse_rules(f.read())

    if not isinstance(document, dict):
        raise FilterSerializationError(
            f"Expected a table with protein_filters and peptide_filters in {path}"
        )
    return Filter.from_dict(document)


def save_filter(rule_filter: Filter, path: Union[str, Path]) -> None:
    """Writes a Filter to a file, using the same extension based formats as
    load_filter.

    Raises:
        FilterSerializationError: if the filter cannot be written as rule text.
    """
    file_format = _get_format(path)
    if file_format == "json":
        text = json.dumps(rule_filter.to_dict(), indent=2)
    elif file_format == "toml":
        text = toml.dumps(rule_filter.to_dict())
    else:
        text = format_rules(rule_filter)

    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
