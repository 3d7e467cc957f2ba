"""Regular expressions that classify key names and column headers as sensitive."""

import re

# Key names (env/json/yaml/ini/toml) that suggest secret content
SENSITIVE_KEY = re.compile(
    r"password|passwd|secret|token|api[_\-.]?key|apikey|auth(?:entication|orization)?"
    r"|credential|private[_\-.]?key|dsn|database[_\-.]?url|db[_\-.]?url"
    r"|connection[_\-.]?string|access[_\-.]?(?:key|secret)|webhook[_\-.]?secret"
    r"|signing[_\-.]?key|encryption[_\-.]?key|bearer|oauth|jwt|client[_\-.]?secret"
    r"|app[_\-.]?secret|master[_\-.]?key|salt|passphrase|private[_\-.]?token"
    r"|session[_\-.]?secret",
    re.IGNORECASE,
)

# Column headers that suggest PII in tabular data (used when no PII config applies)
PII_COLUMN = re.compile(
    r"\b(?:first[_\-.]?name|last[_\-.]?name|full[_\-.]?name|display[_\-.]?name|email"
    r"|phone|mobile|tel(?:ephone)?|address|street|city|zip|postal|dob|birth(?:day|date)?"
    r"|ssn|social[_\-.]?security|credit[_\-.]?card|card[_\-.]?number|iban"
    r"|ip[_\-.]?(?:addr(?:ess)?)?|user(?:name)?|login|account[_\-.]?(?:name|number))\b",
    re.IGNORECASE,
)


def is_sensitive_key(key: str) -> bool:
    """Check if a key name looks like it holds a secret."""
    return SENSITIVE_KEY.search(key) is not None


def is_pii_column(header: str) -> bool:
    """Check if a column header looks like it holds personal data."""
    return PII_COLUMN.search(header) is not None
