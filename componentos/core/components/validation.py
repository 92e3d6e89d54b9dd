"""Default code validator for component source changes.

A lightweight, token-level policy check. It does not parse JavaScript;
rules work on regular expressions over the source with comments and string
contents masked where that matters.

Rules (checked in order, first failure wins):
1. Delimiters must balance ((), [], {}), outside strings and comments
2. Component creation / deletion (capitalized function, class or arrow
   component definitions counted in old vs new source)
3. Network access (fetch, XMLHttpRequest, axios, *Http*Request*, http(s) literals)
4. Style changes (style keyword count differs between old and new)
5. Logic changes (control keyword count differs between old and new)
6. Data access (localStorage, sessionStorage, indexedDB, document.cookie)
7. Dangerous constructs (eval, Function constructor, document.write,
   innerHTML, window.open, string-bodied timers) - always rejected
"""

import re
from typing import List, Optional

from componentos.core.components.models import Permissions, ValidationResult


_COMPONENT_PATTERNS = [
    re.compile(r"\bfunction\s+[A-Z]\w*\s*\("),
    re.compile(r"\bclass\s+[A-Z]\w*"),
    re.compile(
        r"\b(?:const|let|var)\s+[A-Z]\w*\s*=\s*(?:async\s*)?"
        r"(?:function\b|\([^()]*\)\s*=>|[A-Za-z_$][\w$]*\s*=>)"
    ),
]

_NETWORK_PATTERNS = [
    re.compile(r"\b(?:fetch|XMLHttpRequest|axios|WebSocket)\b"),
    re.compile(r"\b\w*http\w*request\w*\b", re.IGNORECASE),
    re.compile(r"""["'`]https?://"""),
]

_STYLE_PATTERN = re.compile(r"style|className|css|margin|padding|color|background|font|width|height")

_LOGIC_PATTERN = re.compile(r"\b(?:if|else|for|while|switch|case|return|function)\b|=>")

_DATA_ACCESS_PATTERN = re.compile(r"\b(?:localStorage|sessionStorage|indexedDB)\b|\bdocument\s*\.\s*cookie\b")

_DANGEROUS_PATTERNS = [
    (re.compile(r"\beval\s*\("), "eval"),
    (re.compile(r"\bnew\s+Function\s*\(|(?<![\w.$])Function\s*\("), "Function"),
    (re.compile(r"\bdocument\s*\.\s*(write|writeln)\b"), "document.write"),
    (re.compile(r"\.\s*innerHTML\b"), "innerHTML (potential XSS)"),
    (re.compile(r"\bdangerouslySetInnerHTML\b"), "dangerouslySetInnerHTML (potential XSS)"),
    (re.compile(r"\bwindow\s*\.\s*open\s*\("), "window.open"),
    (re.compile(r"""\b(?:setTimeout|setInterval)\s*\(\s*["'`]"""), "string-bodied timer"),
]

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")": "(", "]": "[", "}": "{"}


def _mask_comments_and_strings(code: str, keep_strings: bool = False) -> str:
    """Replace comment bodies (and optionally string contents) with spaces.

    Line structure is preserved so positions still map to line numbers.
    Quote characters themselves are kept.
    """
    out: List[str] = []
    i = 0
    n = len(code)
    while i < n:
        ch = code[i]
        nxt = code[i + 1] if i + 1 < n else ""

        if ch == "/" and nxt == "/":
            end = code.find("\n", i)
            end = n if end == -1 else end
            out.append(" " * (end - i))
            i = end
        elif ch == "/" and nxt == "*":
            end = code.find("*/", i + 2)
            end = n if end == -1 else end + 2
            out.append(re.sub(r"[^\n]", " ", code[i:end]))
            i = end
        elif ch in ("'", '"', "`"):
            j = i + 1
            while j < n and code[j] != ch:
                if code[j] == "\\":
                    j += 1
                elif code[j] == "\n" and ch != "`":
                    break
                j += 1
            body = code[i + 1:j]
            out.append(ch)
            out.append(body if keep_strings else re.sub(r"[^\n]", " ", body))
            if j < n and code[j] == ch:
                out.append(ch)
                j += 1
            i = j
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def check_balanced_delimiters(code: str) -> Optional[str]:
    """Return an error message if (), [] or {} do not balance, else None."""
    masked = _mask_comments_and_strings(code)
    stack: List[tuple] = []
    line = 1
    for ch in masked:
        if ch == "\n":
            line += 1
        elif ch in _OPENERS:
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if not stack or stack[-1][0] != _CLOSERS[ch]:
                return f"Unexpected '{ch}' at line {line}"
            stack.pop()
    if stack:
        opener, opened_at = stack[-1]
        return f"Unclosed '{opener}' opened at line {opened_at}"
    return None


def count_component_definitions(code: str) -> int:
    masked = _mask_comments_and_strings(code)
    return sum(len(pattern.findall(masked)) for pattern in _COMPONENT_PATTERNS)


def has_network_requests(code: str) -> bool:
    without_comments = _mask_comments_and_strings(code, keep_strings=True)
    masked = _mask_comments_and_strings(code)
    return (
        any(pattern.search(masked) for pattern in _NETWORK_PATTERNS[:2])
        or bool(_NETWORK_PATTERNS[2].search(without_comments))
    )


def has_style_changes(new_code: str, old_code: str) -> bool:
    return len(_STYLE_PATTERN.findall(new_code)) != len(_STYLE_PATTERN.findall(old_code))


def has_logic_changes(new_code: str, old_code: str) -> bool:
    new_masked = _mask_comments_and_strings(new_code)
    old_masked = _mask_comments_and_strings(old_code)
    return len(_LOGIC_PATTERN.findall(new_masked)) != len(_LOGIC_PATTERN.findall(old_masked))


def has_data_access(code: str) -> bool:
    return bool(_DATA_ACCESS_PATTERN.search(_mask_comments_and_strings(code)))


def find_dangerous_code(code: str) -> Optional[str]:
    """Return a label for the first dangerous construct found, or None."""
    masked = _mask_comments_and_strings(code, keep_strings=True)
    code_only = _mask_comments_and_strings(code)
    for pattern, label in _DANGEROUS_PATTERNS:
        haystack = masked if label == "string-bodied timer" else code_only
        if pattern.search(haystack):
            return label
    return None


def validate_code(new_code: str, old_code: str, permissions: Permissions) -> ValidationResult:
    """Validate a code change against permissions and security rules.

    Args:
        new_code: The proposed source
        old_code: The current source ('' for a component without source)
        permissions: Capability record to enforce

    Returns:
        ValidationResult with is_valid and, on rejection, an error message
    """
    syntax_error = check_balanced_delimiters(new_code)
    if syntax_error:
        return ValidationResult(is_valid=False, error=f"Code validation error: {syntax_error}")

    new_definitions = count_component_definitions(new_code)
    old_definitions = count_component_definitions(old_code)
    if not permissions.allow_component_creation and new_definitions > old_definitions:
        return ValidationResult(
            is_valid=False,
            error="Component creation is not allowed with current permissions",
        )
    if not permissions.allow_component_deletion and new_definitions < old_definitions:
        return ValidationResult(
            is_valid=False,
            error="Component deletion is not allowed with current permissions",
        )

    if not permissions.allow_network_requests and has_network_requests(new_code):
        return ValidationResult(
            is_valid=False,
            error="Network requests are not allowed with current permissions",
        )

    if not permissions.allow_style_changes and has_style_changes(new_code, old_code):
        return ValidationResult(
            is_valid=False,
            error="Style changes are not allowed with current permissions",
        )

    if not permissions.allow_logic_changes and has_logic_changes(new_code, old_code):
        return ValidationResult(
            is_valid=False,
            error="Logic changes are not allowed with current permissions",
        )

    if not permissions.allow_data_access and has_data_access(new_code):
        return ValidationResult(
            is_valid=False,
            error="Data access is not allowed with current permissions",
        )

    dangerous = find_dangerous_code(new_code)
    if dangerous:
        return ValidationResult(
            is_valid=False,
            error=f"Potentially dangerous code detected: {dangerous}",
        )

    return ValidationResult(is_valid=True)
