"""Log Call Fixer - rewrites ad-hoc logging calls to a structured logger.

The Fixer:
1. Re-detects violations and logger presence from the current content
2. Inserts a logger import after the leading import block when missing
3. Inserts a module-level logger instance when missing
4. Rewrites every remaining violation's callee to ``<logger>.<level>``
5. Splices the byte-range edits into the original source and re-parses it

A fix is all-or-nothing: when the regenerated source fails validation the
file is left untouched.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import structlog
from tree_sitter import Node

from log_enforcer.audit.analyzer import SourceText, enclosing, first_error, parse_bytes, top_level_statement
from log_enforcer.audit.detector import CallSite, LogCallDetector, LoggerImport, LoggerPresence, ScanReport
from log_enforcer.audit.naming import module_logger_name
from log_enforcer.errors import ExternalInterpreterFailure, ParseError, RegenerationError
from log_enforcer.files import atomic_write
from log_enforcer.models import FixChange, FixChangeType, FixResult

logger = structlog.get_logger()


@dataclass(frozen=True)
class SourceEdit:
    """Replace bytes ``[start, end)`` of the source with ``text``."""

    start: int
    end: int
    text: str


@dataclass(frozen=True)
class ImportPlan:
    """Import statement to add and how it yields a logger."""

    statement: str
    initializer: str | None = None
    binds_logger: bool = False  # the import itself provides the instance
    binding: str | None = None  # module-scope name the import introduces


def apply_edits(data: bytes, edits: list[SourceEdit]) -> bytes:
    """Splice non-overlapping edits into source bytes.

    Raises:
        RegenerationError: If two edits overlap
    """
    ordered = sorted(edits, key=lambda e: (e.start, e.end))
    chunks = []
    position = 0
    for edit in ordered:
        if edit.start < position:
            raise RegenerationError(f"Overlapping edits at byte {edit.start}")
        chunks.append(data[position:edit.start])
        chunks.append(edit.text.encode("utf-8"))
        position = edit.end
    chunks.append(data[position:])
    return b"".join(chunks)


class LogCallFixer(ABC):
    """Language-independent fix pipeline.

    Subclasses supply the backend statements, the import-block anchor and
    the call rewrite.
    """

    naming_style = "camel"
    # calls inside these run after module initialisation
    deferred_scopes: frozenset[str] = frozenset()

    def __init__(self, detector: LogCallDetector, root: str | Path | None = None):
        self.detector = detector
        self.config = detector.config
        self.settings = detector.settings
        self.language = detector.language
        self.validator = detector.validator
        self.root = Path(root) if root is not None else None
        self._logger = logger.bind(component=type(self).__name__, language=self.language)

    @abstractmethod
    def _header_anchor(self, report: ScanReport) -> Node | None:
        """Last node of the leading import block, if there is one."""

    @abstractmethod
    def _existing_initializer(self, report: ScanReport, path: Path) -> tuple[str, LoggerImport] | None:
        """Logger factory expression built from an import already present, and that import."""

    @abstractmethod
    def _new_import(self, logger_name: str, report: ScanReport, path: Path) -> ImportPlan:
        """Import for the preferred backend."""

    @abstractmethod
    def _declaration(self, name: str, initializer: str) -> str:
        """Module-level statement binding ``name`` to a new logger."""

    @abstractmethod
    def _rewrite_call(self, call: CallSite, logger_name: str, source: SourceText) -> list[SourceEdit]:
        """Edits turning one violating call into a logger call."""

    def level_method(self, level: str) -> str:
        return level

    def logger_name_for(self, path: Path, presence: LoggerPresence, root: Path | None = None) -> str:
        """Existing instance name, else the configured or module-derived name.

        A new name never shadows something the module already binds: a
        numbered variant is used instead.
        """
        if presence.instance_name:
            return presence.instance_name
        if self.settings.naming_strategy == "module":
            name = module_logger_name(
                path,
                root or self.root,
                self.settings.strip_segments,
                self.naming_style,
                fallback=self.settings.logger_variable_name,
            )
        else:
            name = self.settings.logger_variable_name
        return self._free_name(name, presence.bindings)

    def _free_name(self, name: str, taken: set[str]) -> str:
        if name not in taken:
            return name
        separator = "_" if self.naming_style == "snake" else ""
        suffix = 2
        while f"{name}{separator}{suffix}" in taken:
            suffix += 1
        return f"{name}{separator}{suffix}"

    def fix_file(self, file_path: str | Path, dry_run: bool = False, root: str | Path | None = None) -> FixResult:
        """Fix a file on disk.

        Args:
            file_path: File to fix
            dry_run: Run the whole pipeline but do not write the result
            root: Project root for module-derived names (the fixer's own root when omitted)

        Returns:
            FixResult; ``written`` is true only when the file was replaced
        """
        path = Path(file_path)
        try:
            data = path.read_bytes()
        except OSError as e:
            return FixResult(file_path=str(path), success=False, error=f"Cannot read file: {e}")

        result = self.fix_source(data, path, root)
        if not result.modified:
            return result

        if self.validator is not None:
            try:
                self.validator.check_content(result.fixed_content, path.name)
            except (ExternalInterpreterFailure, OSError) as e:
                return self._failed(result, e)

        if dry_run:
            self._logger.info("Dry run, fix not written", file=str(path), changes=len(result.changes))
            return result

        try:
            atomic_write(path, result.fixed_content.encode("utf-8"))
        except OSError as e:
            return self._failed(result, e)

        result.written = True
        self._logger.info("Fix applied", file=str(path), changes=len(result.changes))
        return result

    def fix_source(
        self,
        code: str | bytes,
        file_path: str | Path = "<string>",
        root: str | Path | None = None,
    ) -> FixResult:
        """Run the fix pipeline on in-memory source without touching disk."""
        path = Path(file_path)
        data = code.encode("utf-8") if isinstance(code, str) else code

        try:
            report = self.detector.scan(data, path)
        except ParseError as e:
            return FixResult(
                file_path=str(path),
                success=False,
                original_content=data.decode("utf-8", errors="replace"),
                error=f"{e.error_type}: {e}",
            )

        source = report.source
        if not report.calls:
            return FixResult(
                file_path=str(path),
                success=True,
                original_content=source.text,
                fixed_content=source.text,
            )

        try:
            edits, changes = self._plan(report, path, Path(root) if root is not None else None)
            fixed = apply_edits(source.data, edits)
            self._validate(fixed, path)
        except RegenerationError as e:
            self._logger.warning("Regenerated source failed validation", file=str(path), error=str(e))
            return FixResult(
                file_path=str(path),
                success=False,
                original_content=source.text,
                error=f"{e.error_type}: {e}",
            )

        return FixResult(
            file_path=str(path),
            success=True,
            changes=changes,
            original_content=source.text,
            fixed_content=fixed.decode("utf-8"),
        )

    def _plan(
        self,
        report: ScanReport,
        path: Path,
        root: Path | None = None,
    ) -> tuple[list[SourceEdit], list[FixChange]]:
        presence = report.presence
        source = report.source
        logger_name = self.logger_name_for(path, presence, root)

        header: list[tuple[str, FixChangeType]] = []
        row = self._insertion_row(report)
        needs_instance = not presence.has_instance
        existing = self._existing_initializer(report, path) if needs_instance else None
        initializer = existing[0] if existing else None
        binds_logger = False

        if not presence.has_import or (needs_instance and initializer is None):
            plan = self._new_import(logger_name, report, path)
            if plan.binding in presence.bindings:
                raise RegenerationError(f"Cannot add {plan.statement!r}: {plan.binding!r} is already bound")
            header.append((plan.statement, FixChangeType.IMPORT_ADDED))
            if plan.binds_logger:
                needs_instance = False
                binds_logger = True
            elif needs_instance:
                initializer = plan.initializer
        elif existing is not None:
            # the instance is built from this import, so it must come after it
            row = max(row, existing[1].end_line)

        if needs_instance and initializer is not None:
            header.append((self._declaration(logger_name, initializer), FixChangeType.LOGGER_INSTANCE_ADDED))
            binds_logger = True

        if binds_logger:
            defined_row = row
        else:
            defined_row = presence.instance_lines.get(logger_name, 1) - 1
        self._check_defined_before_use(report, logger_name, defined_row)

        edits: list[SourceEdit] = []
        changes: list[FixChange] = []

        if header:
            offset = source.row_start_offset(row)
            block = "".join(statement + source.newline for statement, _ in header)
            if offset == len(source.data) and source.data and not source.data.endswith(b"\n"):
                block = source.newline + block
            edits.append(SourceEdit(offset, offset, block))
            for i, (statement, change_type) in enumerate(header):
                changes.append(FixChange(line=row + 1 + i, column=0, old="", new=statement, type=change_type))

        for call in report.calls:
            call_edits = self._rewrite_call(call, logger_name, source)
            edits.extend(call_edits)

            start, end = call.call.start_byte, call.call.end_byte
            local = [SourceEdit(e.start - start, e.end - start, e.text) for e in call_edits]
            old = source.data[start:end]
            changes.append(
                FixChange(
                    line=call.violation.line,
                    column=call.violation.column,
                    old=old.decode("utf-8"),
                    new=apply_edits(old, local).decode("utf-8"),
                    type=FixChangeType.CALL_REWRITE,
                )
            )

        return edits, changes

    def _check_defined_before_use(self, report: ScanReport, logger_name: str, defined_row: int) -> None:
        """Reject rewrites that run at import time above the logger's definition.

        Raises:
            RegenerationError: If such a call exists
        """
        for call in report.calls:
            if enclosing(call.call, self.deferred_scopes) is not None:
                continue
            if top_level_statement(call.call).start_point[0] < defined_row:
                raise RegenerationError(
                    f"{logger_name} would be used at line {call.violation.line} before it is defined"
                )

    def _insertion_row(self, report: ScanReport) -> int:
        """0-based row before which new header lines are inserted."""
        anchor = self._header_anchor(report)
        if anchor is not None:
            return anchor.end_point[0] + 1
        for child in report.tree.root_node.named_children:
            if child.type not in ("comment", "hash_bang_line"):
                return child.start_point[0]
        return report.source.line_count

    def _validate(self, fixed: bytes, path: Path) -> None:
        tree = parse_bytes(fixed, self.detector.grammar_for(path))
        error_node = first_error(tree.root_node)
        if error_node is not None:
            raise RegenerationError(f"Rewritten source does not parse (line {error_node.start_point[0] + 1})")

    def _failed(self, result: FixResult, error: Exception) -> FixResult:
        error_type = getattr(error, "error_type", type(error).__name__)
        self._logger.warning("Fix rejected", file=result.file_path, error=str(error), error_type=error_type)
        return FixResult(
            file_path=result.file_path,
            success=False,
            original_content=result.original_content,
            error=f"{error_type}: {error}",
        )
