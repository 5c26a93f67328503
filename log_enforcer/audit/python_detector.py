"""Python detector: flags print() calls and finds logging/structlog/loguru setup."""

import ast
from pathlib import Path

from tree_sitter import Node, Tree

from log_enforcer.audit.analyzer import SourceText, node_text, top_level_statement, walk
from log_enforcer.audit.detector import CallSite, LogCallDetector, LoggerImport, LoggerPresence
from log_enforcer.config import RuleSettings
from log_enforcer.errors import ParseError
from log_enforcer.models import ViolationKind

BACKENDS = ("logging", "structlog", "loguru")

# Attribute paths (relative to the module) and bare names that return a logger
FACTORIES = {
    "logging": {"getLogger"},
    "structlog": {"get_logger", "getLogger", "stdlib.get_logger", "wrap_logger"},
    "loguru": set(),
}

# Names ``from <backend> import *`` binds that matter here
WILDCARD_EXPORTS = {
    "logging": ["getLogger"],
    "structlog": ["get_logger", "getLogger", "wrap_logger"],
    "loguru": ["logger"],
}

NESTED_SCOPES = frozenset({"function_definition", "class_definition", "lambda"})
TARGET_PATTERNS = frozenset({"pattern_list", "tuple_pattern", "list_pattern", "list_splat_pattern"})
STDERR_TARGETS = {"sys.stderr", "stderr"}


class PythonLogDetector(LogCallDetector):
    """Detects print() calls in Python source."""

    language = "python"
    kind = ViolationKind.PRINT_STATEMENT

    @property
    def rule(self) -> RuleSettings:
        return self.config.rules.no_print_statements

    def grammar_for(self, path: Path) -> str:
        return "python"

    def _check_syntax(self, tree: Tree, source: SourceText, path: Path) -> None:
        try:
            ast.parse(source.text, filename=str(path))
        except (SyntaxError, ValueError) as e:
            line = getattr(e, "lineno", None)
            where = f" at line {line}" if line else ""
            raise ParseError(f"Syntax error{where}: {getattr(e, 'msg', e)}", line=line) from e

        super()._check_syntax(tree, source, path)

    def _find_calls(self, root: Node, source: SourceText, file_path: str) -> list[CallSite]:
        calls = []
        for node in walk(root):
            if node.type != "call":
                continue
            function = node.child_by_field_name("function")
            if function is None or function.type != "identifier" or node_text(function, source) != "print":
                continue

            arguments = node.child_by_field_name("arguments")
            to_stderr = self._writes_to_stderr(arguments, source)
            if to_stderr:
                message = "print() to stderr found; use logger.error() instead"
            else:
                message = "print() call found; use a structured logger instead"

            calls.append(
                CallSite(
                    violation=self._violation(
                        node,
                        source,
                        file_path,
                        message=message,
                        method="stderr" if to_stderr else None,
                        level="error" if to_stderr else "info",
                    ),
                    call=node,
                    callee=function,
                    arguments=arguments,
                )
            )
        return calls

    def _writes_to_stderr(self, arguments: Node | None, source: SourceText) -> bool:
        if arguments is None or arguments.type != "argument_list":
            return False
        for child in arguments.named_children:
            if child.type != "keyword_argument":
                continue
            name = node_text(child.child_by_field_name("name"), source)
            value = node_text(child.child_by_field_name("value"), source)
            if name == "file" and value in STDERR_TARGETS:
                return True
        return False

    def _find_presence(self, root: Node, source: SourceText) -> LoggerPresence:
        presence = LoggerPresence()
        statements = list(walk(root, skip=NESTED_SCOPES))

        for node in statements:
            presence.bindings.update(self._bound_names(node, source))
            if node.type == "import_statement":
                presence.imports.extend(self._plain_imports(node, source))
            elif node.type == "import_from_statement":
                imported = self._from_import(node, source)
                if imported is not None:
                    presence.imports.append(imported)
                    if imported.backend == "loguru" and "logger" in imported.named:
                        line = top_level_statement(node).start_point[0] + 1
                        presence.add_instance(imported.named["logger"], line)

        if not presence.imports:
            return presence

        for node in statements:
            if node.type != "assignment":
                continue
            targets = []
            current = node
            while current is not None and current.type == "assignment":
                targets.append(current.child_by_field_name("left"))
                current = current.child_by_field_name("right")
            if current is None or current.type != "call":
                continue
            if not self._is_factory_call(current, presence.imports, source):
                continue
            line = top_level_statement(node).start_point[0] + 1
            for target in targets:
                if target is not None and target.type == "identifier":
                    presence.add_instance(node_text(target, source), line)

        return presence

    def _bound_names(self, node: Node, source: SourceText) -> list[str]:
        """Names a module-scope statement binds."""
        if node.type in ("function_definition", "class_definition"):
            return [node_text(node.child_by_field_name("name"), source)]
        if node.type == "assignment":
            return self._target_names(node.child_by_field_name("left"), source)
        if node.type == "for_statement":
            return self._target_names(node.child_by_field_name("left"), source)
        if node.type in ("import_statement", "import_from_statement"):
            names = []
            for name_node in node.children_by_field_name("name"):
                if name_node.type == "aliased_import":
                    names.append(node_text(name_node.child_by_field_name("alias"), source))
                else:
                    names.append(node_text(name_node, source).split(".")[0])
            return names
        return []

    def _target_names(self, target: Node | None, source: SourceText) -> list[str]:
        if target is None:
            return []
        if target.type == "identifier":
            return [node_text(target, source)]
        if target.type in TARGET_PATTERNS:
            names = []
            for child in target.named_children:
                names.extend(self._target_names(child, source))
            return names
        return []

    def _plain_imports(self, node: Node, source: SourceText) -> list[LoggerImport]:
        found = []
        line = node.start_point[0] + 1
        end_line = top_level_statement(node).end_point[0] + 1
        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                module = node_text(name_node.child_by_field_name("name"), source)
                alias = node_text(name_node.child_by_field_name("alias"), source)
                backend = module.split(".")[0]
                binding = alias if module == backend else None
            else:
                module = node_text(name_node, source)
                backend = module.split(".")[0]
                binding = backend
            if backend in BACKENDS:
                found.append(LoggerImport(backend=backend, line=line, module_binding=binding, end_line=end_line))
        return found

    def _from_import(self, node: Node, source: SourceText) -> LoggerImport | None:
        module_node = node.child_by_field_name("module_name")
        if module_node is None or module_node.type == "relative_import":
            return None
        backend = node_text(module_node, source).split(".")[0]
        if backend not in BACKENDS:
            return None

        imported = LoggerImport(
            backend=backend,
            line=node.start_point[0] + 1,
            end_line=top_level_statement(node).end_point[0] + 1,
        )
        if any(child.type == "wildcard_import" for child in node.children):
            imported.named = {name: name for name in WILDCARD_EXPORTS[backend]}
            return imported

        for name_node in node.children_by_field_name("name"):
            if name_node.type == "aliased_import":
                name = node_text(name_node.child_by_field_name("name"), source)
                imported.named[name] = node_text(name_node.child_by_field_name("alias"), source)
            else:
                name = node_text(name_node, source)
                imported.named[name] = name
        return imported

    def _is_factory_call(self, call: Node, imports: list[LoggerImport], source: SourceText) -> bool:
        callee = node_text(call.child_by_field_name("function"), source)
        for imported in imports:
            factories = FACTORIES[imported.backend]
            if imported.module_binding and callee.startswith(imported.module_binding + "."):
                if callee[len(imported.module_binding) + 1:] in factories:
                    return True
            for name, local in imported.named.items():
                if name in factories and callee == local:
                    return True
                if imported.backend == "loguru" and name == "logger" and callee == f"{local}.bind":
                    return True
        return False
