"""Questionnaire answers -> required tax documents.

The rule table lives in ``rules/document_requirements.yaml``. Each rule pairs a
predicate over the answers with the requirements it adds. Predicates are one of
three kinds:

- ``FlagPredicate``: the answer is exactly ``True``
- ``ListContainsPredicate``: the answer is a list containing an option
- ``AlwaysPredicate``: unconditional

``generate`` is pure and deterministic: the same answers always produce the
same requirements in the same order, so regenerating a checklist is safe to
repeat.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from taxportal.models.db_models import DocumentType
from taxportal.rules.loader import load_document_requirement_rules

logger = logging.getLogger(__name__)

_VALID_DOCUMENT_TYPES = {t.value for t in DocumentType}


@dataclass(frozen=True)
class QuestionnaireAnswer:
    """A single questionnaire answer."""

    question_id: str
    answer: Any = None


@dataclass(frozen=True)
class DocumentRequirement:
    """A required document descriptor produced by the rule set."""

    type: str
    description: str
    is_business_doc: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.type, self.description)


@dataclass(frozen=True)
class FlagPredicate:
    question: str

    def matches(self, answers: Mapping[str, Any]) -> bool:
        return answers.get(self.question) is True


@dataclass(frozen=True)
class ListContainsPredicate:
    question: str
    option: str

    def matches(self, answers: Mapping[str, Any]) -> bool:
        value = answers.get(self.question)
        return isinstance(value, list) and self.option in value


@dataclass(frozen=True)
class AlwaysPredicate:
    def matches(self, answers: Mapping[str, Any]) -> bool:
        return True


Predicate = Union[FlagPredicate, ListContainsPredicate, AlwaysPredicate]


@dataclass(frozen=True)
class RequirementTemplate:
    """A requirement as declared in the rule table.

    ``business`` is either fixed or follows a flag answer (e.g. self-employment
    documents belong to the business return only when there is a side business).
    """

    type: str
    description: str
    business: Union[bool, FlagPredicate] = False

    def resolve(self, answers: Mapping[str, Any]) -> DocumentRequirement:
        if isinstance(self.business, FlagPredicate):
            is_business = self.business.matches(answers)
        else:
            is_business = self.business
        return DocumentRequirement(self.type, self.description, is_business)


@dataclass(frozen=True)
class RequirementRule:
    predicate: Predicate
    requirements: Tuple[RequirementTemplate, ...]


def _parse_predicate(raw: Any, index: int) -> Predicate:
    if raw == "always":
        return AlwaysPredicate()
    if isinstance(raw, dict):
        if "flag" in raw:
            return FlagPredicate(question=str(raw["flag"]))
        if "contains" in raw and "option" in raw:
            return ListContainsPredicate(question=str(raw["contains"]), option=str(raw["option"]))
    raise ValueError(f"Rule {index}: unrecognised predicate {raw!r}")


def _parse_business(raw: Any, index: int) -> Union[bool, FlagPredicate]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, dict) and "flag" in raw:
        return FlagPredicate(question=str(raw["flag"]))
    raise ValueError(f"Rule {index}: unrecognised business value {raw!r}")


def parse_rule_table(data: Mapping[str, Any]) -> List[RequirementRule]:
    """Turn the raw YAML structure into typed rules.

    Raises:
        ValueError: if an entry is malformed or names an unknown document type
    """
    rules: List[RequirementRule] = []
    for index, raw_rule in enumerate(data.get("rules", [])):
        if not isinstance(raw_rule, dict) or "when" not in raw_rule:
            raise ValueError(f"Rule {index}: missing 'when'")

        predicate = _parse_predicate(raw_rule["when"], index)

        templates = []
        for raw_req in raw_rule.get("require") or []:
            doc_type = str(raw_req.get("type", ""))
            description = raw_req.get("description")
            if doc_type not in _VALID_DOCUMENT_TYPES:
                raise ValueError(f"Rule {index}: unknown document type {doc_type!r}")
            if not description:
                raise ValueError(f"Rule {index}: requirement without description")
            templates.append(
                RequirementTemplate(
                    type=doc_type,
                    description=str(description),
                    business=_parse_business(raw_req.get("business", False), index),
                )
            )

        if not templates:
            raise ValueError(f"Rule {index}: no requirements")
        rules.append(RequirementRule(predicate=predicate, requirements=tuple(templates)))

    return rules


_rule_table: Optional[List[RequirementRule]] = None


def get_rule_table(force_reload: bool = False) -> List[RequirementRule]:
    """Get the parsed default rule table (cached)."""
    global _rule_table

    if _rule_table is None or force_reload:
        _rule_table = parse_rule_table(load_document_requirement_rules(force_reload=force_reload))
    return _rule_table


def _answer_map(answers: Iterable[Union[QuestionnaireAnswer, Mapping[str, Any]]]) -> Dict[str, Any]:
    """Index answers by question id; the first answer for a question wins."""
    mapped: Dict[str, Any] = {}
    for item in answers:
        if isinstance(item, Mapping):
            question_id, answer = item.get("question_id"), item.get("answer")
        else:
            question_id, answer = item.question_id, item.answer
        if question_id is not None and question_id not in mapped:
            mapped[question_id] = answer
    return mapped


def generate(
    answers: Iterable[Union[QuestionnaireAnswer, Mapping[str, Any]]],
    rules: Optional[Sequence[RequirementRule]] = None,
) -> List[DocumentRequirement]:
    """
    Derive the required documents for a set of questionnaire answers.

    Args:
        answers: QuestionnaireAnswer objects or {"question_id", "answer"} mappings
        rules: Rule table to evaluate (defaults to the bundled YAML table)

    Returns:
        Requirements in rule-declaration order, deduplicated on (type, description)
    """
    answer_map = _answer_map(answers)
    table = get_rule_table() if rules is None else rules

    requirements: List[DocumentRequirement] = []
    seen = set()

    for rule in table:
        if not rule.predicate.matches(answer_map):
            continue
        for template in rule.requirements:
            requirement = template.resolve(answer_map)
            if requirement.key in seen:
                continue
            seen.add(requirement.key)
            requirements.append(requirement)

    logger.debug(f"Generated {len(requirements)} document requirements from {len(answer_map)} answers")
    return requirements
