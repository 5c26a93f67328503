"""JavaScript/TypeScript fixer: console.* -> winston / pino / bunyan / log4js."""

from pathlib import Path

from tree_sitter import Node

from log_enforcer.audit.analyzer import SourceText
from log_enforcer.audit.detector import CallSite, LoggerImport, ScanReport
from log_enforcer.audit.fixer import ImportPlan, LogCallFixer, SourceEdit
from log_enforcer.audit.javascript_detector import DECLARATIONS, is_require_call

ESM_EXTENSIONS = {".mjs", ".mts", ".ts", ".tsx"}

# Initializer built on the module object ``{m}``
MODULE_INITIALIZERS = {
    "winston": (
        "{m}.createLogger({{ level: 'info', format: {m}.format.json(), "
        "transports: [new {m}.transports.Console()] }})"
    ),
    "pino": "{m}()",
    "bunyan": "{m}.createLogger({{ name: '{name}' }})",
    "log4js": "{m}.getLogger()",
    "loglevel": "{m}.getLogger('{name}')",
}

# Initializer built on a named factory import ``{f}``
NAMED_INITIALIZERS = {
    "winston": ("createLogger", "{f}({{ level: 'info' }})"),
    "pino": ("pino", "{f}()"),
    "bunyan": ("createLogger", "{f}({{ name: '{name}' }})"),
    "log4js": ("getLogger", "{f}()"),
    "loglevel": ("getLogger", "{f}('{name}')"),
}


def _is_directive(node: Node) -> bool:
    return (
        node.type == "expression_statement"
        and node.named_child_count == 1
        and node.named_children[0].type == "string"
    )


def _is_require_value(node: Node | None, source: SourceText) -> bool:
    """require('x'), require('x').y or require('x')(...)."""
    if node is None:
        return False
    if is_require_call(node, source):
        return True
    if node.type == "member_expression":
        return is_require_call(node.child_by_field_name("object"), source)
    if node.type == "call_expression":
        return is_require_call(node.child_by_field_name("function"), source)
    return False


class JavaScriptLogFixer(LogCallFixer):
    """Rewrites console.* calls to a module-level JavaScript logger."""

    naming_style = "camel"
    deferred_scopes = frozenset({
        "function_declaration",
        "generator_function_declaration",
        "function_expression",
        "function",
        "generator_function",
        "arrow_function",
        "method_definition",
    })

    def _header_anchor(self, report: ScanReport) -> Node | None:
        source = report.source
        anchor = None
        in_prologue = True
        for child in report.tree.root_node.named_children:
            if child.type == "comment":
                continue
            if child.type == "hash_bang_line" or (in_prologue and _is_directive(child)):
                anchor = child
                continue
            in_prologue = False
            if child.type == "import_statement":
                anchor = child
            elif child.type in DECLARATIONS and self._is_require_declaration(child, source):
                anchor = child
            elif child.type == "expression_statement" and _is_require_value(child.named_children[0], source):
                anchor = child
            else:
                break
        return anchor

    def _is_require_declaration(self, node: Node, source: SourceText) -> bool:
        declarators = [c for c in node.named_children if c.type == "variable_declarator"]
        return bool(declarators) and all(
            _is_require_value(d.child_by_field_name("value"), source) for d in declarators
        )

    def _existing_initializer(self, report: ScanReport, path: Path) -> tuple[str, LoggerImport] | None:
        name = self._app_name(path)
        for imported in report.presence.imports:
            if imported.module_binding:
                return MODULE_INITIALIZERS[imported.backend].format(m=imported.module_binding, name=name), imported
            factory, template = NAMED_INITIALIZERS[imported.backend]
            if factory in imported.named:
                return template.format(f=imported.named[factory], name=name), imported
        return None

    def _new_import(self, logger_name: str, report: ScanReport, path: Path) -> ImportPlan:
        backend = self.settings.preferred_logger
        if self._uses_esm(report, path):
            statement = f"import {backend} from '{backend}';"
        else:
            statement = f"const {backend} = require('{backend}');"
        initializer = MODULE_INITIALIZERS[backend].format(m=backend, name=self._app_name(path))
        return ImportPlan(statement=statement, initializer=initializer, binding=backend)

    def _declaration(self, name: str, initializer: str) -> str:
        return f"const {name} = {initializer};"

    def _rewrite_call(self, call: CallSite, logger_name: str, source: SourceText) -> list[SourceEdit]:
        method = self.level_method(call.violation.level)
        return [SourceEdit(call.callee.start_byte, call.callee.end_byte, f"{logger_name}.{method}")]

    def _uses_esm(self, report: ScanReport, path: Path) -> bool:
        style = self.settings.module_style
        if style != "auto":
            return style == "esm"
        if path.suffix.lower() in ESM_EXTENSIONS:
            return True
        return any(
            child.type in ("import_statement", "export_statement")
            for child in report.tree.root_node.named_children
        )

    def _app_name(self, path: Path) -> str:
        return path.stem.replace("'", "").replace("\\", "") or "app"
