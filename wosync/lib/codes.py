"""
Verb and noun code lookup.

The remote system wants numeric codes where the technician writes
keywords. Reference data lives in the tables directory, either as

    verbs.csv   verb_keyword,verb_code,has_noun
    nouns.csv   noun_keyword,noun_code

or as a single codes.yaml:

    verbs:
      Inspect: {code: 12, requires_noun: false}
      Repair:  {code: 30, requires_noun: true}
    nouns:
      Pump: 401

codes.yaml wins when both are present. The table is loaded on first
lookup and kept for the lifetime of the resolver.
"""

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import CodeNotFound, CodeTableError

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "t"}


@dataclass(frozen=True)
class VerbCode:
    code: int
    requires_noun: bool


@dataclass
class CodeTable:
    verbs: dict[str, VerbCode] = field(default_factory=dict)
    nouns: dict[str, int] = field(default_factory=dict)


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _as_code(value, keyword: str, source: Path) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise CodeTableError(f"{source}: code for '{keyword}' is not an integer: {value!r}") from None


def _read_csv(path: Path) -> list[dict[str, str]]:
    if not path.exists():
        raise CodeTableError(f"Code table not found: {path}")
    with open(path, newline="", encoding="utf-8") as f:
        return [row for row in csv.DictReader(f) if any((v or "").strip() for v in row.values())]


def load_csv_tables(tables_dir: Path) -> CodeTable:
    """Load verbs.csv and nouns.csv."""
    table = CodeTable()
    verbs_path = tables_dir / "verbs.csv"
    nouns_path = tables_dir / "nouns.csv"

    for row in _read_csv(verbs_path):
        keyword = (row.get("verb_keyword") or "").strip()
        if not keyword or not (row.get("verb_code") or "").strip():
            continue
        table.verbs[keyword] = VerbCode(
            code=_as_code(row["verb_code"], keyword, verbs_path),
            requires_noun=_as_bool(row.get("has_noun", "")),
        )

    for row in _read_csv(nouns_path):
        keyword = (row.get("noun_keyword") or "").strip()
        if not keyword or not (row.get("noun_code") or "").strip():
            continue
        table.nouns[keyword] = _as_code(row["noun_code"], keyword, nouns_path)

    return table


def load_yaml_table(path: Path) -> CodeTable:
    """Load codes.yaml."""
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise CodeTableError(f"Invalid YAML in {path}: {e}") from None

    if not isinstance(data, dict):
        raise CodeTableError(f"{path}: expected a mapping with 'verbs' and 'nouns'")

    table = CodeTable()
    for keyword, spec in (data.get("verbs") or {}).items():
        keyword = str(keyword).strip()
        if isinstance(spec, dict):
            code = spec.get("code")
            requires_noun = _as_bool(spec.get("requires_noun", False))
        else:
            code, requires_noun = spec, False
        table.verbs[keyword] = VerbCode(_as_code(code, keyword, path), requires_noun)

    for keyword, code in (data.get("nouns") or {}).items():
        keyword = str(keyword).strip()
        table.nouns[keyword] = _as_code(code, keyword, path)

    return table


def load_code_table(tables_dir: Path) -> CodeTable:
    """Load the code table from a tables directory.

    Raises:
        CodeTableError: if the reference data is missing or malformed
    """
    yaml_path = tables_dir / "codes.yaml"
    if yaml_path.exists():
        table = load_yaml_table(yaml_path)
    else:
        table = load_csv_tables(tables_dir)
    logger.info(f"[CODES] Loaded {len(table.verbs)} verbs and {len(table.nouns)} nouns from {tables_dir}")
    return table


class CodeResolver:
    """Keyword to code lookups backed by a lazily loaded CodeTable.

    Lookups are exact and case-sensitive on the trimmed keyword.
    """

    def __init__(self, tables_dir: Path | None = None, table: CodeTable | None = None):
        if tables_dir is None and table is None:
            raise ValueError("CodeResolver needs a tables directory or a table")
        self.tables_dir = tables_dir
        self._table = table

    @property
    def table(self) -> CodeTable:
        if self._table is None:
            self._table = load_code_table(self.tables_dir)
        return self._table

    def resolve_verb(self, keyword: str) -> VerbCode:
        verb = self.table.verbs.get(keyword.strip())
        if verb is None:
            raise CodeNotFound("verb", keyword.strip())
        return verb

    def resolve_noun(self, keyword: str) -> int:
        code = self.table.nouns.get(keyword.strip())
        if code is None:
            raise CodeNotFound("noun", keyword.strip())
        return code

    def resolve(self, verb: str, noun: str | None) -> tuple[int, int | None]:
        """Codes for a verb and optional noun, as a service is staged.

        The noun is only looked up when the verb requires one; otherwise
        the noun code is None.

        Raises:
            CodeNotFound: unknown verb, unknown noun, or a required noun missing
        """
        verb_code = self.resolve_verb(verb)
        if not verb_code.requires_noun:
            return verb_code.code, None
        if not noun:
            raise CodeNotFound("noun", f"(missing, required by {verb.strip()})")
        return verb_code.code, self.resolve_noun(noun)
