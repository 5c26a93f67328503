"""Per-file log enforcement for Python, JavaScript and TypeScript.

This module implements the per-file pipeline:
- Exclusion Classifier: Exempts test files and CLI entry points
- Detectors: Tree-sitter based detection of print()/console.* calls
- Fixers: Rewrite violations to a structured logger, all-or-nothing
- Language Analyzers: Wire the above together per language family
"""

from .classifier import (
    Classification,
    ExclusionClassifier,
)
from .detector import (
    CallSite,
    LogCallDetector,
    LoggerImport,
    LoggerPresence,
    ScanReport,
)
from .python_detector import PythonLogDetector
from .javascript_detector import JavaScriptLogDetector
from .fixer import (
    ImportPlan,
    LogCallFixer,
    SourceEdit,
    apply_edits,
)
from .python_fixer import PythonLogFixer
from .javascript_fixer import JavaScriptLogFixer
from .interpreter import ExternalValidator
from .languages import (
    EXTENSION_LANGUAGES,
    LanguageAnalyzer,
    build_analyzer,
    build_analyzers,
    language_for,
)
from .naming import module_logger_name
from .patterns import PatternSet, glob_to_regex

__all__ = [
    # Classifier
    "Classification",
    "ExclusionClassifier",
    "PatternSet",
    "glob_to_regex",
    # Detectors
    "CallSite",
    "LogCallDetector",
    "LoggerImport",
    "LoggerPresence",
    "ScanReport",
    "PythonLogDetector",
    "JavaScriptLogDetector",
    "ExternalValidator",
    # Fixers
    "ImportPlan",
    "LogCallFixer",
    "SourceEdit",
    "apply_edits",
    "PythonLogFixer",
    "JavaScriptLogFixer",
    "module_logger_name",
    # Languages
    "EXTENSION_LANGUAGES",
    "LanguageAnalyzer",
    "build_analyzer",
    "build_analyzers",
    "language_for",
]
