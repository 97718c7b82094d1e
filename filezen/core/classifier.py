"""File classification for FileZen.

Categories resolve per file in this order: a custom rule for the extension, the
oracle's answer from a single batched request, the static extension table, and
finally ``Category.UNKNOWN``.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import Category, FileRecord, extension_of
from .oracle import CategorizationOracle, NullOracle


class Classifier:
    """Assigns a category to every discovered file."""

    def __init__(self, oracle: Optional[CategorizationOracle] = None,
                 fallback_table: Optional[Mapping[str, Category]] = None):
        """
        Initialize the classifier.

        Args:
            oracle: Remote categorization oracle; NullOracle if omitted
            fallback_table: Extension table used when the oracle has no answer
        """
        self.oracle = oracle or NullOracle()
        self.fallback_table = dict(fallback_table if fallback_table is not None else Category.get_extensions())
        self.logger = logging.getLogger(__name__)

    def classify(self, records: Sequence[FileRecord],
                 rules: Optional[Mapping[str, Category]] = None) -> Dict[str, Category]:
        """
        Resolve and store a category on each record.

        Args:
            records: Records from one scan
            rules: Extension-to-category overrides from the rule store

        Returns:
            Mapping of file name to the resolved category
        """
        rules = rules or {}
        oracle_answers = self._ask_oracle(
            record.name for record in records if record.extension not in rules
        )

        resolved: Dict[str, Category] = {}
        for record in records:
            record.category = self._resolve(record.name, record.extension, rules, oracle_answers)
            resolved[record.name] = record.category

        counts: Dict[str, int] = {}
        for category in resolved.values():
            counts[category.value] = counts.get(category.value, 0) + 1
        self.logger.info(f"Classified {len(records)} file(s): {counts}")
        return resolved

    def classify_names(self, names: Sequence[str],
                       rules: Optional[Mapping[str, Category]] = None) -> Dict[str, Category]:
        """Resolve categories for bare file names."""
        rules = rules or {}
        oracle_answers = self._ask_oracle(name for name in names if extension_of(name) not in rules)
        return {
            name: self._resolve(name, extension_of(name), rules, oracle_answers)
            for name in names
        }

    def _resolve(self, name: str, extension: str, rules: Mapping[str, Category],
                 oracle_answers: Mapping[str, Category]) -> Category:
        if extension in rules:
            return rules[extension]
        if name in oracle_answers:
            return oracle_answers[name]
        return self.fallback_table.get(extension, Category.UNKNOWN)

    def _ask_oracle(self, names: Iterable[str]) -> Dict[str, Category]:
        """
        Make the single batched oracle request for a scan.

        Every failure is absorbed: the result is then empty and the static table
        decides instead.
        """
        pending: List[str] = list(dict.fromkeys(names))
        if not pending:
            return {}

        try:
            answers = self.oracle.classify(pending)
        except Exception as e:
            self.logger.warning(f"Categorization oracle failed, using fallback table: {e}")
            return {}

        if not isinstance(answers, Mapping):
            self.logger.warning(f"Ignoring oracle answer of type {type(answers).__name__}")
            return {}

        requested = set(pending)
        accepted: Dict[str, Category] = {}
        for name, label in answers.items():
            category = Category.from_label(label)
            if name in requested and category is not None:
                accepted[name] = category

        if len(accepted) < len(answers):
            self.logger.warning(f"Ignored {len(answers) - len(accepted)} unusable oracle answer(s)")
        self.logger.debug(f"Oracle answered {len(accepted)} of {len(pending)} name(s)")
        return accepted
