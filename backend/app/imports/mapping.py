"""Header → field mapping.

The automatic pass is driven by MATCH_RULES, an ordered table of match
strategies. Supporting a new source format means adding an alias to a
FieldSpec or a row to the table, not another branch here.

Precedence: every (rule, field, header) hit becomes a candidate ranked by
rule position, then field declaration order, then column order. Candidates
are assigned greedily, so an exact match always beats a substring match,
each field gets at most one column and each column feeds at most one field.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Sequence

from app.imports.errors import MissingRequiredFieldError, UnknownColumnError
from app.imports.fields import FieldSpec

logger = logging.getLogger(__name__)

UNMAPPED = "__unmapped__"


# ─── Rule table ───

@dataclass(frozen=True)
class MatchRule:
    name: str
    test: Callable[[str, str], bool]  # (normalised header, normalised field form)


MATCH_RULES: tuple[MatchRule, ...] = (
    MatchRule("exact", lambda header, form: header == form),
    MatchRule("header_contains", lambda header, form: form in header),
    MatchRule("header_within", lambda header, form: header in form),
)


def normalise_header(header: str) -> str:
    return header.strip().lower()


def field_forms(spec: FieldSpec) -> tuple[str, ...]:
    """Lower-cased spellings a header may use for this field."""
    forms = [spec.key.replace("_", " ").lower(), spec.label.lower()]
    forms.extend(alias.lower() for alias in spec.aliases)
    # dict.fromkeys keeps order while dropping duplicates
    return tuple(f for f in dict.fromkeys(forms) if f)


def _best_rank(header: str, forms: Sequence[str], rules: Sequence[MatchRule]) -> int | None:
    for rank, rule in enumerate(rules):
        if any(rule.test(header, form) for form in forms):
            return rank
    return None


# ─── Mapping ───

@dataclass
class ColumnMapping:
    """FieldSpec key → source column, for one import session."""

    specs: tuple[FieldSpec, ...]
    headers: tuple[str, ...]
    columns: dict[str, str | None] = field(default_factory=dict)
    manual: set[str] = field(default_factory=set)
    matched_by: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for spec in self.specs:
            self.columns.setdefault(spec.key, None)

    def source_for(self, key: str) -> str | None:
        return self.columns.get(key)

    def is_mapped(self, key: str) -> bool:
        column = self.columns.get(key)
        return bool(column) and column != UNMAPPED

    def assign(self, key: str, column: str | None) -> None:
        """Manually map `key` to `column` (or UNMAPPED / None to clear it).

        Manual choices are never revisited by the automatic pass.
        """
        if key not in self.columns:
            raise KeyError(key)
        if column in (None, "", UNMAPPED):
            self.columns[key] = None
        elif column not in self.headers:
            raise UnknownColumnError(key, column)
        else:
            self.columns[key] = column
        self.manual.add(key)
        self.matched_by[key] = "manual"

    def apply_overrides(self, overrides: Mapping[str, str | None]) -> None:
        for key, column in overrides.items():
            self.assign(key, column)

    def reapply(self) -> None:
        """Re-run the automatic pass for every field not set by hand."""
        claimed = {self.columns[k] for k in self.manual if self.columns.get(k)}
        pending = [s for s in self.specs if s.key not in self.manual]
        proposed = _auto_assign(pending, self.headers, claimed)
        for spec in pending:
            column, rule = proposed.get(spec.key, (None, None))
            self.columns[spec.key] = column
            if rule:
                self.matched_by[spec.key] = rule
            else:
                self.matched_by.pop(spec.key, None)

    def missing_required(self) -> list[FieldSpec]:
        return [s for s in self.specs if s.required and not self.is_mapped(s.key)]

    def validate(self) -> None:
        """Raise MissingRequiredFieldError if a required field has no column."""
        missing = self.missing_required()
        if missing:
            raise MissingRequiredFieldError([s.label for s in missing])

    def as_dict(self) -> dict[str, str | None]:
        return {key: (col if self.is_mapped(key) else None) for key, col in self.columns.items()}


def _auto_assign(
    specs: Iterable[FieldSpec],
    headers: Sequence[str],
    claimed: set[str] | None = None,
    rules: Sequence[MatchRule] = MATCH_RULES,
) -> dict[str, tuple[str, str]]:
    claimed = set(claimed or ())
    candidates: list[tuple[int, int, int, str, str]] = []
    for spec_pos, spec in enumerate(specs):
        forms = field_forms(spec)
        for header_pos, header in enumerate(headers):
            normalised = normalise_header(header)
            if not normalised or header in claimed:
                continue
            rank = _best_rank(normalised, forms, rules)
            if rank is not None:
                candidates.append((rank, spec_pos, header_pos, spec.key, header))

    assigned: dict[str, tuple[str, str]] = {}
    for rank, _, _, key, header in sorted(candidates):
        if key in assigned or header in claimed:
            continue
        assigned[key] = (header, rules[rank].name)
        claimed.add(header)
    return assigned


def propose_mapping(headers: Sequence[str], specs: Sequence[FieldSpec]) -> ColumnMapping:
    """Automatic header matching; pure, so repeated calls agree."""
    mapping = ColumnMapping(specs=tuple(specs), headers=tuple(headers))
    mapping.reapply()
    logger.debug(
        "Proposed mapping: %s",
        {k: v for k, v in mapping.columns.items() if v},
    )
    return mapping
