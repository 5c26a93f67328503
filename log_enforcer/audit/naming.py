"""Logger variable naming derived from a file's project-relative path."""

import keyword
import re
from pathlib import Path, PurePath

WORD_SEPARATORS = re.compile(r"[-_.\s]+")
NON_IDENTIFIER = re.compile(r"\W")


def path_words(file_path: str | PurePath, root: str | PurePath | None, strip_segments: list[str]) -> list[str]:
    """Words of the directory segments and file stem, boilerplate dirs removed."""
    path = PurePath(str(file_path).replace("\\", "/"))
    if root is not None and path.is_absolute():
        resolved, base = Path(path).resolve(), Path(root).resolve()
        if resolved.is_relative_to(base):
            path = resolved.relative_to(base)

    segments = [part for part in path.parts[:-1] if part not in strip_segments and part not in ("/", "..", ".")]
    segments.append(path.stem)

    words = []
    for segment in segments:
        for word in WORD_SEPARATORS.split(segment):
            word = NON_IDENTIFIER.sub("", word)
            if word:
                words.append(word)
    return words


def _finish(name: str, fallback: str) -> str:
    if not name:
        return fallback
    if name[0].isdigit():
        name = "_" + name
    if keyword.iskeyword(name):
        return fallback
    return name


def camel_logger_name(words: list[str], fallback: str = "logger") -> str:
    """``["api", "user", "service"]`` -> ``apiUserServiceLogger``."""
    if not words:
        return fallback
    head, *rest = words
    name = head[0].lower() + head[1:] + "".join(w[0].upper() + w[1:] for w in rest) + "Logger"
    return _finish(name, fallback)


def snake_logger_name(words: list[str], fallback: str = "logger") -> str:
    """``["api", "user", "service"]`` -> ``api_user_service_logger``."""
    if not words:
        return fallback
    return _finish("_".join(w.lower() for w in words) + "_logger", fallback)


def module_logger_name(
    file_path: str | PurePath,
    root: str | PurePath | None,
    strip_segments: list[str],
    style: str,
    fallback: str = "logger",
) -> str:
    """Module-derived logger variable name in ``camel`` or ``snake`` style."""
    words = path_words(file_path, root, strip_segments)
    if style == "snake":
        return snake_logger_name(words, fallback)
    return camel_logger_name(words, fallback)
