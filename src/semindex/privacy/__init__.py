"""
Privacy redaction for git-ignored files.

Files excluded from version control are never indexed verbatim. Their
sensitive values are rewritten while the document structure is preserved,
so the index stays useful without leaking secrets.
"""

from semindex.privacy.formats import FormatKind, Redactor, detect_format, fake_content
from semindex.privacy.pii_config import PiiConfig, load_pii_config
from semindex.privacy.values import fake_pii, fake_value

__all__ = [
    "FormatKind",
    "PiiConfig",
    "Redactor",
    "detect_format",
    "fake_content",
    "fake_pii",
    "fake_value",
    "load_pii_config",
]
