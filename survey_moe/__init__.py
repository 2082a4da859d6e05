"""Survey frequency tables with margins of error."""
from .metrics import (
    FREQ_COLUMNS,
    Z_95,
    InsufficientSampleError,
    apply_order,
    collapse_categories,
    frequency_by_group,
    frequency_table,
    margin_of_error,
    multiselect_long,
    multiselect_table,
)
from .data_prep import JoinKeyError, SurveyLoadError, dedupe_respondents, join_demographics

__version__ = "0.1.0"
