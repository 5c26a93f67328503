"""JavaScript/TypeScript detector: flags console.* calls and finds logger setup."""

from pathlib import Path

from tree_sitter import Node

from log_enforcer.audit.analyzer import SourceText, node_text, string_value, top_level_statement, walk
from log_enforcer.audit.detector import CallSite, LogCallDetector, LoggerImport, LoggerPresence
from log_enforcer.config import ConsoleRuleSettings
from log_enforcer.models import ViolationKind

# console method -> structured logger level
CONSOLE_LEVELS = {
    "log": "info",
    "info": "info",
    "warn": "warn",
    "error": "error",
    "debug": "debug",
    "trace": "debug",
}

BACKENDS = ("winston", "pino", "bunyan", "log4js", "loglevel")

# Members of the module object that create a logger
MEMBER_FACTORIES = {
    "winston": {"createLogger"},
    "pino": {"pino"},
    "bunyan": {"createLogger"},
    "log4js": {"getLogger"},
    "loglevel": {"getLogger"},
}

# Backends whose module object is itself a logger factory
CALLABLE_MODULES = {"pino", "bunyan"}

DECLARATIONS = {"lexical_declaration", "variable_declaration"}
NAMED_DECLARATIONS = {
    "function_declaration",
    "generator_function_declaration",
    "class_declaration",
    "abstract_class_declaration",
    "enum_declaration",
}

TSX_EXTENSIONS = {".tsx"}
TYPESCRIPT_EXTENSIONS = {".ts", ".mts", ".cts"}


def backend_for_source(module: str) -> str | None:
    """Logging backend named by an import source, if any."""
    for backend in BACKENDS:
        if backend in module:
            return backend
    return None


def is_require_call(node: Node | None, source: SourceText) -> bool:
    if node is None or node.type != "call_expression":
        return False
    function = node.child_by_field_name("function")
    return function is not None and function.type == "identifier" and node_text(function, source) == "require"


def require_source(node: Node, source: SourceText) -> str | None:
    """Module string passed to ``require(...)``."""
    arguments = node.child_by_field_name("arguments")
    if arguments is None or not arguments.named_children:
        return None
    first = arguments.named_children[0]
    if first.type not in ("string", "template_string"):
        return None
    return string_value(first, source)


def module_declarations(root: Node) -> list[Node]:
    """Top-level const/let/var declarations, including exported ones."""
    found = []
    for child in root.named_children:
        if child.type == "export_statement":
            child = child.child_by_field_name("declaration")
            if child is None:
                continue
        if child.type in DECLARATIONS:
            found.append(child)
    return found


class JavaScriptLogDetector(LogCallDetector):
    """Detects console.* calls in JavaScript and TypeScript source."""

    language = "javascript"
    kind = ViolationKind.CONSOLE_USAGE

    @property
    def rule(self) -> ConsoleRuleSettings:
        return self.config.rules.no_console_usage

    def grammar_for(self, path: Path) -> str:
        suffix = path.suffix.lower()
        if suffix in TSX_EXTENSIONS:
            return "tsx"
        if suffix in TYPESCRIPT_EXTENSIONS:
            return "typescript"
        return "javascript"

    def _find_calls(self, root: Node, source: SourceText, file_path: str) -> list[CallSite]:
        allowed = set(self.rule.allowed_methods)
        calls = []

        for node in walk(root):
            if node.type != "call_expression":
                continue
            function = node.child_by_field_name("function")
            if function is None or function.type != "member_expression":
                continue
            obj = function.child_by_field_name("object")
            prop = function.child_by_field_name("property")
            if obj is None or prop is None or node_text(obj, source) != "console":
                continue

            method = node_text(prop, source)
            if method not in CONSOLE_LEVELS or method in allowed:
                continue

            calls.append(
                CallSite(
                    violation=self._violation(
                        node,
                        source,
                        file_path,
                        message=f"console.{method}() call found; use a structured logger instead",
                        method=method,
                        level=CONSOLE_LEVELS[method],
                    ),
                    call=node,
                    callee=function,
                    arguments=node.child_by_field_name("arguments"),
                )
            )
        return calls

    def _find_presence(self, root: Node, source: SourceText) -> LoggerPresence:
        presence = LoggerPresence()

        for child in root.named_children:
            presence.bindings.update(self._bound_names(child, source))
            if child.type == "import_statement":
                imported = self._esm_import(child, source)
                if imported is not None:
                    presence.imports.append(imported)
            elif child.type == "expression_statement":
                expression = child.named_children[0] if child.named_children else None
                if is_require_call(expression, source):
                    backend = backend_for_source(require_source(expression, source) or "")
                    if backend:
                        presence.imports.append(
                            LoggerImport(
                                backend=backend,
                                line=child.start_point[0] + 1,
                                end_line=child.end_point[0] + 1,
                            )
                        )

        declarations = module_declarations(root)
        for declaration in declarations:
            for declarator in declaration.named_children:
                if declarator.type != "variable_declarator":
                    continue
                imported = self._require_import(declarator, source)
                if imported is not None:
                    presence.imports.append(imported)

        for declaration in declarations:
            line = top_level_statement(declaration).start_point[0] + 1
            for declarator in declaration.named_children:
                if declarator.type != "variable_declarator":
                    continue
                name = declarator.child_by_field_name("name")
                value = declarator.child_by_field_name("value")
                if name is None or name.type != "identifier" or value is None:
                    continue
                if self._is_factory_call(value, presence.imports, source):
                    presence.add_instance(node_text(name, source), line)

        return presence

    def _bound_names(self, node: Node, source: SourceText) -> list[str]:
        """Names a top-level statement binds."""
        if node.type == "export_statement":
            node = node.child_by_field_name("declaration")
            if node is None:
                return []
        if node.type in NAMED_DECLARATIONS:
            return [node_text(node.child_by_field_name("name"), source)]
        if node.type in DECLARATIONS:
            names = []
            for declarator in node.named_children:
                if declarator.type == "variable_declarator":
                    names.extend(
                        node_text(n, source)
                        for n in walk(declarator.child_by_field_name("name"))
                        if n.type in ("identifier", "shorthand_property_identifier_pattern")
                    )
            return names
        if node.type == "import_statement":
            clause = next((c for c in node.named_children if c.type == "import_clause"), None)
            if clause is None:
                return []
            names = []
            for part in clause.named_children:
                if part.type == "identifier":
                    names.append(node_text(part, source))
                elif part.type == "namespace_import":
                    names.extend(node_text(c, source) for c in part.named_children if c.type == "identifier")
                elif part.type == "named_imports":
                    for specifier in part.named_children:
                        if specifier.type == "import_specifier":
                            alias = specifier.child_by_field_name("alias")
                            local = alias if alias is not None else specifier.child_by_field_name("name")
                            names.append(node_text(local, source))
            return names
        return []

    def _esm_import(self, node: Node, source: SourceText) -> LoggerImport | None:
        # import type { Logger } from 'winston' binds nothing at runtime
        if any(child.type == "type" for child in node.children):
            return None
        source_node = node.child_by_field_name("source")
        if source_node is None:
            return None
        backend = backend_for_source(string_value(source_node, source))
        if backend is None:
            return None

        imported = LoggerImport(backend=backend, line=node.start_point[0] + 1, end_line=node.end_point[0] + 1)
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            return imported

        for part in clause.named_children:
            if part.type == "identifier":
                imported.module_binding = node_text(part, source)
            elif part.type == "namespace_import":
                names = [c for c in part.named_children if c.type == "identifier"]
                if names:
                    imported.module_binding = node_text(names[0], source)
            elif part.type == "named_imports":
                for specifier in part.named_children:
                    if specifier.type != "import_specifier":
                        continue
                    name = node_text(specifier.child_by_field_name("name"), source)
                    alias = specifier.child_by_field_name("alias")
                    imported.named[name] = node_text(alias, source) if alias else name
        return imported

    def _require_import(self, declarator: Node, source: SourceText) -> LoggerImport | None:
        value = declarator.child_by_field_name("value")
        if value is None:
            return None

        member = None
        if value.type == "call_expression" and is_require_call(value.child_by_field_name("function"), source):
            # require('pino')(): the import is consumed by the call
            call = value.child_by_field_name("function")
        elif value.type == "member_expression" and is_require_call(value.child_by_field_name("object"), source):
            # require('winston').createLogger
            call = value.child_by_field_name("object")
            member = node_text(value.child_by_field_name("property"), source)
        elif is_require_call(value, source):
            call = value
        else:
            return None

        backend = backend_for_source(require_source(call, source) or "")
        if backend is None:
            return None

        imported = LoggerImport(
            backend=backend,
            line=declarator.start_point[0] + 1,
            end_line=top_level_statement(declarator).end_point[0] + 1,
        )
        target = declarator.child_by_field_name("name")
        if target is None or call is not value:
            if member and target is not None and target.type == "identifier":
                imported.named[member] = node_text(target, source)
            return imported

        if target.type == "identifier":
            imported.module_binding = node_text(target, source)
        elif target.type == "object_pattern":
            for prop in target.named_children:
                if prop.type == "shorthand_property_identifier_pattern":
                    name = node_text(prop, source)
                    imported.named[name] = name
                elif prop.type == "pair_pattern":
                    key = node_text(prop.child_by_field_name("key"), source)
                    local = prop.child_by_field_name("value")
                    if local is not None and local.type == "identifier":
                        imported.named[key] = node_text(local, source)
        return imported

    def _is_factory_call(self, value: Node, imports: list[LoggerImport], source: SourceText) -> bool:
        if value.type != "call_expression":
            return False
        function = value.child_by_field_name("function")
        if function is None:
            return False

        # require('pino')()
        if is_require_call(function, source):
            backend = backend_for_source(require_source(function, source) or "")
            return backend in CALLABLE_MODULES

        if function.type == "identifier":
            callee = node_text(function, source)
            if callee in CALLABLE_MODULES:
                return True
            for imported in imports:
                if imported.backend in CALLABLE_MODULES and callee == imported.module_binding:
                    return True
                for name, local in imported.named.items():
                    if name in MEMBER_FACTORIES[imported.backend] and callee == local:
                        return True
            return False

        if function.type == "member_expression":
            obj = node_text(function.child_by_field_name("object"), source)
            prop = node_text(function.child_by_field_name("property"), source)
            if obj in MEMBER_FACTORIES and prop in MEMBER_FACTORIES[obj]:
                return True
            for imported in imports:
                if obj == imported.module_binding and prop in MEMBER_FACTORIES[imported.backend]:
                    return True
        return False
