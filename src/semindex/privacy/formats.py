"""Format-dispatching redaction of file content.

Each supported format is handled by an independent pure function. The
format is resolved once per file from its name. Handlers rewrite sensitive
values in place and leave structure (keys, section headers, braces, column
headers, interpolation markers) untouched.
"""

import enum
import json
import logging
import re
from pathlib import Path, PurePath
from typing import Any, Callable

from semindex.privacy.patterns import is_pii_column, is_sensitive_key
from semindex.privacy.pii_config import PiiConfig, load_pii_config
from semindex.privacy.values import FAKE_GENERIC, fake_pii, fake_value

logger = logging.getLogger(__name__)


class FormatKind(enum.Enum):
    ENV = "env"
    JSON = "json"
    YAML = "yaml"
    INI = "ini"
    TOML = "toml"
    CSV = "csv"
    TSV = "tsv"
    SOURCE_CODE = "source_code"
    UNKNOWN = "unknown"


SOURCE_EXTENSIONS = {
    ".r", ".py", ".js", ".ts", ".jsx", ".tsx",
    ".rb", ".go", ".php", ".java", ".cs", ".swift",
    ".kt", ".sh", ".bash", ".zsh", ".fish",
}
INI_EXTENSIONS = {".ini", ".cfg", ".conf", ".properties"}
ENV_BASENAME_RE = re.compile(r"\.env\.\w+$")


def detect_format(file_path: str | PurePath) -> FormatKind:
    """Resolve the redaction format for a file from its name."""
    path = PurePath(file_path)
    base = path.name.lower()
    ext = path.suffix.lower()

    if base == ".env" or ext == ".env" or ENV_BASENAME_RE.search(base):
        return FormatKind.ENV
    if ext == ".json":
        return FormatKind.JSON
    if ext == ".csv":
        return FormatKind.CSV
    if ext == ".tsv":
        return FormatKind.TSV
    if ext in (".yml", ".yaml"):
        return FormatKind.YAML
    if ext in INI_EXTENSIONS:
        return FormatKind.INI
    if ext == ".toml":
        return FormatKind.TOML
    if ext in SOURCE_EXTENSIONS:
        return FormatKind.SOURCE_CODE
    return FormatKind.UNKNOWN


# ---------------------------------------------------------------------------
# Line-oriented key/value formats
# ---------------------------------------------------------------------------

# KEY=value  KEY="value"  KEY='value'  export KEY=value
ENV_LINE_RE = re.compile(
    r"^([ \t]*(?:export[ \t]+)?([A-Z_][A-Z0-9_.]*)[ \t]*=[ \t]*)([^\r\n]*)",
    re.IGNORECASE | re.MULTILINE,
)

# key = value  or  key: value  (section headers and comments never match)
INI_LINE_RE = re.compile(
    r"^([ \t]*([^=:#\[;\s][^=:\r\n]*?)[ \t]*[=:][ \t]*)([^\r\n]+)",
    re.MULTILINE,
)

# key: value  key: "value"  - key: value
YAML_LINE_RE = re.compile(
    r"^([ \t]*(?:-[ \t]+)?([\w][\w.\-]*)[ \t]*:[ \t]*)([\"']?)([^\r\n]+?)\3[ \t]*(?=\r?$)",
    re.MULTILINE,
)

# key = "value"  key = 'value'  key = value
TOML_LINE_RE = re.compile(
    r"^([ \t]*(\w[\w.\-]*)[ \t]*=[ \t]*)([\"']?)([^\r\n]+?)\3[ \t]*(?=\r?$)",
    re.MULTILINE,
)


def _unquote(raw: str) -> tuple[str, str]:
    """Split a raw value into (quote_char, inner_value)."""
    value = raw.strip()
    quote = value[0] if value[:1] in ('"', "'") else ""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return quote, value


def fake_env(content: str) -> str:
    def replace(match: re.Match[str]) -> str:
        prefix, key, raw = match.group(1), match.group(2), match.group(3)
        if not is_sensitive_key(key):
            return match.group(0)
        quote, value = _unquote(raw)
        return f"{prefix}{quote}{fake_value(value)}{quote}"

    return ENV_LINE_RE.sub(replace, content)


def fake_ini(content: str) -> str:
    def replace(match: re.Match[str]) -> str:
        prefix, key, value = match.group(1), match.group(2), match.group(3)
        if not is_sensitive_key(key.strip()):
            return match.group(0)
        return f"{prefix}{fake_value(value.strip())}"

    return INI_LINE_RE.sub(replace, content)


def _quoted_line_replacer(match: re.Match[str]) -> str:
    prefix, key, quote, value = match.groups()
    if not is_sensitive_key(key.strip()):
        return match.group(0)
    return f"{prefix}{quote}{fake_value(value)}{quote}"


def fake_yaml(content: str) -> str:
    return YAML_LINE_RE.sub(_quoted_line_replacer, content)


def fake_toml(content: str) -> str:
    return TOML_LINE_RE.sub(_quoted_line_replacer, content)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


def fake_object(obj: Any) -> Any:
    """Recursively fake string values under sensitive keys."""
    if isinstance(obj, list):
        return [fake_object(item) for item in obj]
    if isinstance(obj, dict):
        result = {}
        for key, value in obj.items():
            if is_sensitive_key(key) and isinstance(value, str):
                result[key] = fake_value(value)
            else:
                result[key] = fake_object(value)
        return result
    return obj


def fake_json(content: str) -> str:
    try:
        obj = json.loads(content)
    except ValueError:
        # Not valid JSON, fall back to line-by-line
        return fake_ini(content)
    result = json.dumps(fake_object(obj), indent=2, ensure_ascii=False)
    if content.endswith("\n"):
        result += "\n"
    return result


# ---------------------------------------------------------------------------
# Tabular (CSV / TSV)
# ---------------------------------------------------------------------------


def split_row(line: str, sep: str) -> list[str]:
    """Split a row on ``sep`` outside double quotes, keeping raw field text."""
    fields: list[str] = []
    start = 0
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == sep and not in_quotes:
            fields.append(line[start:i])
            start = i + 1
    fields.append(line[start:])
    return fields


def _clean_header(field: str) -> str:
    return field.strip().strip("\"'").strip()


def fake_csv(content: str, sep: str, filename: str, pii_config: PiiConfig) -> str:
    lines = content.split("\n")
    headers = [_clean_header(h) for h in split_row(lines[0].rstrip("\r"), sep)]
    declared = pii_config.get(filename)

    if declared is not None:
        sensitive = [i for i, h in enumerate(headers) if h in declared]
    else:
        sensitive = [i for i, h in enumerate(headers) if is_pii_column(h)]

    if not sensitive:
        return content

    out = [lines[0]]
    for line in lines[1:]:
        if not line.strip():
            out.append(line)
            continue
        eol = "\r" if line.endswith("\r") else ""
        cols = split_row(line[: len(line) - len(eol)], sep)
        for idx in sensitive:
            if idx < len(cols):
                quote = '"' if cols[idx].strip().startswith('"') else ""
                cols[idx] = f"{quote}{fake_pii(headers[idx])}{quote}"
        out.append(sep.join(cols) + eol)
    return "\n".join(out)


# ---------------------------------------------------------------------------
# Source code
# ---------------------------------------------------------------------------

# Double-quoted literals may span lines; single-quoted ones may not, so an
# apostrophe in a comment never opens a literal.
STRING_LITERAL_RE = re.compile(
    r'"""(?P<tdq>[\s\S]*?)"""'
    r"|'''(?P<tsq>[\s\S]*?)'''"
    r'|"(?P<dq>(?:[^"\\]|\\[\s\S])*)"'
    r"|'(?P<sq>(?:[^'\\\n]|\\[\s\S])*)'"
)

# ${expr}  $(cmd)  {name} / {0} / {x!r:>10}  %s / %(name)d
INTERPOLATION_RE = re.compile(
    r"\$\{[^}]*\}"
    r"|\$\([^)]*\)"
    r"|\{[\w.]*(?:![rsa])?(?::[^{}]*)?\}"
    r"|%(?:\(\w+\))?[-#0 +]*\d*(?:\.\d+)?[sdifrxXeEgGc]"
)

SKIPPED_LITERALS = {"*", "?", "."}
PLACEHOLDER_STARTS = "{}%<>"


def fake_literal_text(text: str) -> str:
    """Fake the literal text of a string, keeping interpolation markers."""
    if not INTERPOLATION_RE.search(text):
        return fake_value(text) or FAKE_GENERIC

    pieces: list[str] = []
    last = 0
    for marker in INTERPOLATION_RE.finditer(text):
        pieces.append(_fake_segment(text[last : marker.start()]))
        pieces.append(marker.group(0))
        last = marker.end()
    pieces.append(_fake_segment(text[last:]))
    return "".join(pieces)


def _fake_segment(segment: str) -> str:
    # Separators between markers (" ", "/", ", ") carry no data
    if not any(ch.isalnum() for ch in segment):
        return segment
    core = segment.strip()
    lead = segment[: len(segment) - len(segment.lstrip())]
    trail = segment[len(segment.rstrip()) :]
    return f"{lead}{fake_value(core) or FAKE_GENERIC}{trail}"


def _fake_block(body: str) -> str:
    body = body.strip()
    return fake_literal_text(body) if body else "redacted"


def _replace_literal(match: re.Match[str]) -> str:
    if match.group("tdq") is not None:
        return '"""' + _fake_block(match.group("tdq")) + '"""'
    if match.group("tsq") is not None:
        return "'''" + _fake_block(match.group("tsq")) + "'''"

    quote = '"' if match.group("dq") is not None else "'"
    value = match.group("dq") if quote == '"' else match.group("sq")
    if len(value) <= 1 or value[0] in PLACEHOLDER_STARTS or value in SKIPPED_LITERALS:
        return match.group(0)
    return f"{quote}{fake_literal_text(value)}{quote}"


def fake_source_code(content: str) -> str:
    # The whole file is git-ignored, so every string literal is treated as sensitive.
    return STRING_LITERAL_RE.sub(_replace_literal, content)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

HANDLERS: dict[FormatKind, Callable[[str], str]] = {
    FormatKind.ENV: fake_env,
    FormatKind.JSON: fake_json,
    FormatKind.YAML: fake_yaml,
    FormatKind.INI: fake_ini,
    FormatKind.TOML: fake_toml,
    FormatKind.SOURCE_CODE: fake_source_code,
    # Unknown formats get the env-style handler as a best effort
    FormatKind.UNKNOWN: fake_env,
}

TABULAR_SEPARATORS = {FormatKind.CSV: ",", FormatKind.TSV: "\t"}


def fake_content(
    content: str,
    file_path: str | PurePath,
    pii_config: PiiConfig | None = None,
) -> str:
    """Fake sensitive values in ``content`` based on the file's format.

    Never raises: if a format handler fails, the line-oriented env handler
    is used instead.
    """
    kind = detect_format(file_path)
    try:
        if kind in TABULAR_SEPARATORS:
            return fake_csv(
                content, TABULAR_SEPARATORS[kind], PurePath(file_path).name, pii_config or {}
            )
        return HANDLERS[kind](content)
    except Exception as e:
        logger.warning(
            "Redaction handler %s failed for %s, using line heuristic: %s",
            kind.value,
            file_path,
            e,
        )
        return fake_env(content)


class Redactor:
    """Redacts git-ignored files for one project.

    The PII config is read lazily on the first tabular file and cached for
    the lifetime of the instance.
    """

    def __init__(self, root: Path):
        self.root = root
        self._pii_config: PiiConfig | None = None

    @property
    def pii_config(self) -> PiiConfig:
        if self._pii_config is None:
            self._pii_config = load_pii_config(self.root)
        return self._pii_config

    def fake_content(self, content: str, file_path: str | PurePath) -> str:
        pii_config = None
        if detect_format(file_path) in TABULAR_SEPARATORS:
            pii_config = self.pii_config
        return fake_content(content, file_path, pii_config)
