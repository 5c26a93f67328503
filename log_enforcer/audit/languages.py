"""Language families: extension lookup and per-language analyzer wiring."""

from pathlib import Path, PurePath

import structlog

from log_enforcer.audit.classifier import Classification, ExclusionClassifier
from log_enforcer.audit.detector import LogCallDetector
from log_enforcer.audit.fixer import LogCallFixer
from log_enforcer.audit.interpreter import ExternalValidator
from log_enforcer.audit.javascript_detector import JavaScriptLogDetector
from log_enforcer.audit.javascript_fixer import JavaScriptLogFixer
from log_enforcer.audit.patterns import PatternSet
from log_enforcer.audit.python_detector import PythonLogDetector
from log_enforcer.audit.python_fixer import PythonLogFixer
from log_enforcer.config import EnforcerConfig
from log_enforcer.models import FileAnalysisResult, FixResult

logger = structlog.get_logger()


EXTENSION_LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
}

LANGUAGES = ("python", "javascript", "typescript")


def language_for(file_path: str | PurePath) -> str | None:
    """Language family of a file, by extension only."""
    return EXTENSION_LANGUAGES.get(PurePath(str(file_path)).suffix.lower())


class LanguageAnalyzer:
    """Classifier, detector and fixer for one language family."""

    def __init__(
        self,
        language: str,
        classifier: ExclusionClassifier,
        detector: LogCallDetector,
        fixer: LogCallFixer,
        exclude_patterns: list[str] | None = None,
    ):
        self.language = language
        self.classifier = classifier
        self.detector = detector
        self.fixer = fixer
        self.exclude = PatternSet(exclude_patterns or [])

    @property
    def settings(self):
        return self.detector.settings

    def is_excluded_path(self, file_path: str | PurePath) -> bool:
        """True when the language's exclude_patterns drop the file entirely."""
        return self.exclude.matches(file_path)

    def classify(self, file_path: str | PurePath) -> Classification:
        return self.classifier.classify(file_path)

    def detect(self, file_path: str | Path) -> FileAnalysisResult:
        return self.detector.detect_file(file_path)

    def analyze(self, file_path: str | Path, relative_path: str | PurePath | None = None) -> FileAnalysisResult:
        """Classify, then detect. Excluded files are never parsed."""
        classification = self.classify(relative_path or file_path)
        if classification.excluded:
            return FileAnalysisResult.excluded_file(str(file_path), self.language, classification.reason)
        return self.detect(file_path)

    def fix(self, file_path: str | Path, dry_run: bool = False, root: str | Path | None = None) -> FixResult:
        return self.fixer.fix_file(file_path, dry_run=dry_run, root=root)


def build_analyzer(config: EnforcerConfig, language: str, root: str | Path | None = None) -> LanguageAnalyzer:
    """Wire up the analyzer for one language family from configuration."""
    settings = config.language_settings(language)

    validator = None
    if settings.validator_command:
        validator = ExternalValidator(settings.validator_command, timeout=config.performance.interpreter_timeout)

    if language == "python":
        detector: LogCallDetector = PythonLogDetector(config, validator=validator)
        fixer: LogCallFixer = PythonLogFixer(detector, root=root)
    else:
        detector = JavaScriptLogDetector(config, language=language, validator=validator)
        fixer = JavaScriptLogFixer(detector, root=root)

    return LanguageAnalyzer(
        language=language,
        classifier=ExclusionClassifier(settings.test_file_patterns, settings.cli_file_patterns),
        detector=detector,
        fixer=fixer,
        exclude_patterns=settings.exclude_patterns,
    )


def build_analyzers(config: EnforcerConfig, root: str | Path | None = None) -> dict[str, LanguageAnalyzer]:
    """Analyzers for every enabled language family."""
    analyzers = {}
    for language in LANGUAGES:
        if not config.language_settings(language).enabled:
            logger.debug("Language disabled", language=language)
            continue
        analyzers[language] = build_analyzer(config, language, root)
    return analyzers
