"""
Validate and normalize diagnosed-condition names.

Candidate names come from lab pattern matching, from an LLM, or straight
off a report, so they are frequently test names, lab-value strings or
generic descriptors ("Elevated") rather than conditions. This module
rejects those, checks gender fit, warns on age fit and near-duplicates,
and never raises.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Optional

from api.condition_models import ExistingCondition, ValidationResult

logger = logging.getLogger(__name__)

# Well-known conditions. Informational only: a name outside this list is
# still accepted.
COMMON_CONDITIONS: tuple[str, ...] = (
    "diabetes", "hypertension", "anemia", "hyperlipidemia", "hypothyroidism",
    "hyperthyroidism", "asthma", "copd", "arthritis", "osteoporosis", "obesity",
    "anxiety", "depression", "migraine", "epilepsy", "parkinson", "alzheimer",
    "heart disease", "cardiovascular disease", "stroke", "kidney disease",
    "liver disease", "hepatitis", "cirrhosis", "gastritis", "ulcer",
    "irritable bowel", "crohn", "colitis", "celiac", "lactose intolerance",
    "allergy", "eczema", "psoriasis", "dermatitis", "acne", "vitiligo",
    "osteopenia", "gout", "fibromyalgia", "lupus", "rheumatoid",
    "multiple sclerosis", "als", "huntington", "tourette",
    "adhd", "autism", "bipolar", "schizophrenia", "ptsd", "ocd",
    "cancer", "tumor", "malignancy", "benign", "polyp", "cyst",
    "infection", "bacterial", "viral", "fungal", "parasitic",
    "pneumonia", "bronchitis", "sinusitis", "tonsillitis", "pharyngitis",
    "urinary tract infection", "uti", "kidney infection", "bladder infection",
    "high cholesterol", "triglycerides", "metabolic syndrome", "insulin resistance",
    "pcos", "endometriosis", "fibroids", "menopause",
    "iron deficiency", "b12 deficiency", "folate deficiency",
    "vitamin d deficiency", "calcium deficiency", "magnesium deficiency",
)

# Any name containing one of these is a test/report artifact, not a condition
EXCLUDED_TERMS: tuple[str, ...] = (
    "test", "report", "lab", "laboratory", "diagnostic", "center",
    "normal", "abnormal", "within range", "out of range", "reference",
    "sample", "specimen", "collection", "analysis", "result",
    "parameter", "value", "unit", "range", "finding", "observation",
    "procedure", "examination", "screening", "checkup", "routine",
    "follow-up", "review", "assessment", "evaluation", "consultation",
)

GENERIC_DESCRIPTORS: frozenset[str] = frozenset(
    {"abnormal", "elevated", "decreased", "high", "low", "positive", "negative"}
)

FEMALE_ONLY_KEYWORDS: tuple[str, ...] = ("pcos", "endometriosis", "fibroids", "menopause", "pregnancy")
MALE_ONLY_KEYWORDS: tuple[str, ...] = ("prostate", "andropause", "testicular")
ADULT_ONSET_KEYWORDS: tuple[str, ...] = ("menopause", "andropause", "prostate", "osteoporosis")
ADULT_ONSET_MIN_AGE = 40

DUPLICATE_THRESHOLD = 0.7

_LABEL_WORDS = r"(?:diagnosis|diagnosed|condition|disease|disorder|syndrome)"
_LEADING_LABEL = re.compile(rf"^{_LABEL_WORDS}:\s*", re.IGNORECASE)
_TRAILING_LABEL = re.compile(rf"\s*\b{_LABEL_WORDS}$", re.IGNORECASE)

# A number followed by a unit ("5 mg", "3.2mmol", "8 ng/mL", "150 mmHg")
# marks a lab value string; up to two prefix letters cover ng, pg, mcg, dl.
_VALUE_WITH_UNIT = re.compile(
    r"\d+(?:\.\d+)?\s*[a-zµ]{0,2}(?:mmol|mol|mg|ml|kg|cm|mm|unit|iu|g)", re.IGNORECASE
)


def normalize_condition_name(name: Optional[str]) -> str:
    """Strip label prefixes/suffixes and title-case each word.

    "Diagnosis: type 2 DIABETES" -> "Type 2 Diabetes". Idempotent.
    """
    if not name or not isinstance(name, str):
        return ""

    normalized = " ".join(name.split())

    # Lower-casing "İ" adds a combining dot, which opens a word boundary
    # before a following label word
    previous = None
    while previous != normalized:
        previous = normalized
        normalized = _strip_labels(normalized)
        normalized = " ".join(_capitalize(word) for word in normalized.split(" ") if word)

    return normalized


def _strip_labels(name: str) -> str:
    previous = None
    while previous != name:
        previous = name
        name = _LEADING_LABEL.sub("", name)
        name = _TRAILING_LABEL.sub("", name).strip()
    return name


def _capitalize(word: str) -> str:
    first = word[:1]
    upper = first.upper()
    # "ß".upper() is "SS"; keep such letters as-is so the result is stable
    if len(upper) != 1:
        upper = first
    return upper + word[1:].lower()


def is_valid_condition_name(name: Optional[str]) -> bool:
    """Reject names that are too short, test/report artifacts, lab values or bare descriptors."""
    normalized = normalize_condition_name(name).lower()

    if len(normalized) < 3:
        return False

    if any(term in normalized for term in EXCLUDED_TERMS):
        return False

    if _VALUE_WITH_UNIT.search(normalized):
        return False

    if normalized in GENERIC_DESCRIPTORS:
        return False

    return True


def is_common_condition(name: Optional[str]) -> bool:
    normalized = normalize_condition_name(name).lower()
    return any(known in normalized for known in COMMON_CONDITIONS)


def is_age_appropriate(condition: str, age: Optional[int]) -> bool:
    """Soft check: adult-onset conditions are unlikely under 40.

    Unknown (or zero) age is always appropriate.
    """
    if not age:
        return True
    condition_lower = condition.lower()
    if age < ADULT_ONSET_MIN_AGE and any(k in condition_lower for k in ADULT_ONSET_KEYWORDS):
        return False
    return True


def is_gender_appropriate(condition: str, gender: Optional[str]) -> bool:
    """Hard check against sex-specific conditions. Unknown gender always passes."""
    if not gender:
        return True
    condition_lower = condition.lower()
    gender_lower = gender.lower()

    if gender_lower != "female" and any(k in condition_lower for k in FEMALE_ONLY_KEYWORDS):
        return False
    if gender_lower != "male" and any(k in condition_lower for k in MALE_ONLY_KEYWORDS):
        return False
    return True


def calculate_similarity(first: str, second: str) -> float:
    """1.0 for equal names, 0.8 if one contains the other, else word Jaccard."""
    a = normalize_condition_name(first).lower()
    b = normalize_condition_name(second).lower()

    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8

    words_a = set(a.split())
    words_b = set(b.split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def existing_condition_name(existing: Any) -> str:
    """Name of an existing condition given as a string, dict or ExistingCondition."""
    if isinstance(existing, str):
        return existing
    if isinstance(existing, ExistingCondition):
        return existing.condition or ""
    if isinstance(existing, dict):
        value = existing.get("condition")
        return value if isinstance(value, str) else ""
    return ""


def is_duplicate(
    candidate: str,
    existing_conditions: Iterable[Any],
    threshold: float = DUPLICATE_THRESHOLD,
) -> bool:
    for existing in existing_conditions:
        name = existing_condition_name(existing)
        if not name.strip():
            continue
        if calculate_similarity(candidate, name) >= threshold:
            return True
    return False


def _context_value(context: Any, key: str) -> Any:
    if context is None:
        return None
    if isinstance(context, dict):
        return context.get(key)
    return getattr(context, key, None)


def validate_condition(condition: str, context: Any = None) -> ValidationResult:
    """Validate a candidate condition against its name and the member context.

    ``context`` may be a ConditionContext or a plain dict with optional
    age, gender and existing_conditions. Order of checks: name format
    (hard), age (warning), gender (hard), duplicate of an existing
    condition (warning).
    """
    result = ValidationResult(normalized_name=normalize_condition_name(condition))

    if not is_valid_condition_name(condition):
        result.is_valid = False
        result.reasons.append("Invalid condition name format")
        return result

    age = _context_value(context, "age")
    gender = _context_value(context, "gender")
    existing = _context_value(context, "existing_conditions")

    if age is not None and not is_age_appropriate(condition, age):
        result.warnings.append(f"Condition may not be age-appropriate for age {age}")

    if gender and not is_gender_appropriate(condition, gender):
        result.is_valid = False
        result.reasons.append(f"Condition is not gender-appropriate for {gender}")
        return result

    if existing and is_duplicate(condition, existing):
        result.warnings.append("Similar condition already exists")

    if not is_common_condition(condition):
        logger.debug("Accepted a condition outside the common-condition list")
    return result
