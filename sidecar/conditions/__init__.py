from .combinations import (
    PARAMETER_COMBINATIONS,
    CombinationMatch,
    ParameterCombination,
    detect_combinations,
    identify_parameter_combinations,
)
from .filtering import filter_conditions, separate_conditions
from .scoring import calculate_validation_score, should_auto_add
from .validator import (
    calculate_similarity,
    is_age_appropriate,
    is_duplicate,
    is_gender_appropriate,
    is_valid_condition_name,
    normalize_condition_name,
    validate_condition,
)

__all__ = [
    "PARAMETER_COMBINATIONS",
    "CombinationMatch",
    "ParameterCombination",
    "detect_combinations",
    "identify_parameter_combinations",
    "filter_conditions",
    "separate_conditions",
    "calculate_validation_score",
    "should_auto_add",
    "calculate_similarity",
    "is_age_appropriate",
    "is_duplicate",
    "is_gender_appropriate",
    "is_valid_condition_name",
    "normalize_condition_name",
    "validate_condition",
]
