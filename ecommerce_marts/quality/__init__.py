"""
Data Quality Module
"""
from .validators import DataValidator, ValidationCheck, ValidationResult, ValidationSeverity, ValidationStatus
from .business_rules import BUSINESS_RULES, BusinessRule, RuleContext, run_business_rules
from .suite_runner import QualityReport, run_data_tests

__all__ = [
    "DataValidator",
    "ValidationCheck",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "BUSINESS_RULES",
    "BusinessRule",
    "RuleContext",
    "run_business_rules",
    "QualityReport",
    "run_data_tests",
]
