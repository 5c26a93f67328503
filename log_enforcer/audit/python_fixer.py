"""Python fixer: print(...) -> logging / structlog / loguru calls."""

import ast
from pathlib import Path

from tree_sitter import Node

from log_enforcer.audit.analyzer import SourceText, node_text
from log_enforcer.audit.detector import CallSite, LoggerImport, ScanReport
from log_enforcer.audit.fixer import ImportPlan, LogCallFixer, SourceEdit
from log_enforcer.errors import RegenerationError

# print() keywords with no logger counterpart
PRINT_ONLY_KEYWORDS = {"sep", "end", "file", "flush"}

HEADER_STATEMENTS = {"future_import_statement", "import_statement", "import_from_statement"}
DOCSTRING_NODES = {"string", "concatenated_string"}

# Python logging libraries spell warn as warning
LEVEL_METHODS = {"warn": "warning"}


class PythonLogFixer(LogCallFixer):
    """Rewrites print() calls to a module-level Python logger."""

    naming_style = "snake"
    deferred_scopes = frozenset({"function_definition", "lambda"})

    def level_method(self, level: str) -> str:
        return LEVEL_METHODS.get(level, level)

    def _header_anchor(self, report: ScanReport) -> Node | None:
        anchor = None
        first = True
        for child in report.tree.root_node.named_children:
            if child.type == "comment":
                continue
            is_docstring = (
                first
                and child.type == "expression_statement"
                and child.named_child_count == 1
                and child.named_children[0].type in DOCSTRING_NODES
            )
            first = False
            if is_docstring or child.type in HEADER_STATEMENTS:
                anchor = child
                continue
            break
        return anchor

    def _existing_initializer(self, report: ScanReport, path: Path) -> tuple[str, LoggerImport] | None:
        for imported in report.presence.imports:
            initializer = self._initializer_from(imported)
            if initializer is not None:
                return initializer, imported
        return None

    def _initializer_from(self, imported: LoggerImport) -> str | None:
        binding = imported.module_binding
        if imported.backend == "logging":
            if binding:
                return f"{binding}.getLogger(__name__)"
            if "getLogger" in imported.named:
                return f"{imported.named['getLogger']}(__name__)"
        elif imported.backend == "structlog":
            if binding:
                return f"{binding}.get_logger(__name__)"
            for factory in ("get_logger", "getLogger"):
                if factory in imported.named:
                    return f"{imported.named[factory]}(__name__)"
        elif imported.backend == "loguru" and binding:
            return f"{binding}.logger"
        return None

    def _new_import(self, logger_name: str, report: ScanReport, path: Path) -> ImportPlan:
        preferred = self.settings.preferred_logger
        if preferred == "loguru":
            alias = "" if logger_name == "logger" else f" as {logger_name}"
            return ImportPlan(statement=f"from loguru import logger{alias}", binds_logger=True, binding=logger_name)
        if preferred == "structlog":
            return ImportPlan(
                statement="import structlog",
                initializer="structlog.get_logger(__name__)",
                binding="structlog",
            )
        return ImportPlan(statement="import logging", initializer="logging.getLogger(__name__)", binding="logging")

    def _declaration(self, name: str, initializer: str) -> str:
        return f"{name} = {initializer}"

    def _rewrite_call(self, call: CallSite, logger_name: str, source: SourceText) -> list[SourceEdit]:
        method = self.level_method(call.violation.level)
        edits = [SourceEdit(call.callee.start_byte, call.callee.end_byte, f"{logger_name}.{method}")]

        arguments = call.arguments
        if arguments is None or arguments.type != "argument_list":
            return edits

        args = [c for c in arguments.named_children if c.type != "comment"]
        dropped = [self._is_print_only(arg, source) for arg in args]

        if all(dropped):
            edits.append(SourceEdit(arguments.start_byte, arguments.end_byte, '("")'))
            return edits

        first_kept = dropped.index(False)
        if first_kept > 0:
            edits.append(SourceEdit(args[0].start_byte, args[first_kept].start_byte, ""))
        for i in range(first_kept + 1, len(args)):
            if dropped[i]:
                edits.append(SourceEdit(args[i - 1].end_byte, args[i].end_byte, ""))
        return edits

    def _is_print_only(self, arg: Node, source: SourceText) -> bool:
        if arg.type != "keyword_argument":
            return False
        return node_text(arg.child_by_field_name("name"), source) in PRINT_ONLY_KEYWORDS

    def _validate(self, fixed: bytes, path: Path) -> None:
        try:
            ast.parse(fixed, filename=str(path))
        except (SyntaxError, ValueError) as e:
            raise RegenerationError(f"Rewritten source is not valid Python: {e}") from e
        super()._validate(fixed, path)
