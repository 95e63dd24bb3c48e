"""Finding extractor: prompt the model with one file and turn its free-text reply into findings."""

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from app.models.vulnerability import CONFIDENCE_MAX_LENGTH, TITLE_MAX_LENGTH, TYPE_MAX_LENGTH
from app.schemas.findings import ExtractedFinding, Severity, SourceFile
from app.services.file_selector import detect_language
from app.services.model_client import ModelClient, ModelInvocationError

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_MAX_CHARS = 8_000
TRUNCATION_MARKER = "... (truncated)"

# Defaults for fields the model left out.
_DEFAULT_TYPE = "UNKNOWN"
_DEFAULT_TITLE = "Security Issue"
_DEFAULT_DESCRIPTION = "No description provided"
_DEFAULT_IMPACT = "Potential security risk"
_DEFAULT_RECOMMENDATION = "Review code for security best practices"
_DEFAULT_SEVERITY: Severity = "MEDIUM"
_DEFAULT_CONFIDENCE = "MEDIUM"

# Severity synonyms (upper-case) -> canonical level.
_SEVERITY_ALIASES: dict[str, Severity] = {
    "CRITICAL": "CRITICAL",
    "SEVERE": "CRITICAL",
    "HIGH": "HIGH",
    "MAJOR": "HIGH",
    "MEDIUM": "MEDIUM",
    "MODERATE": "MEDIUM",
    "LOW": "LOW",
    "MINOR": "LOW",
    "INFO": "LOW",
}

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
# Greedy: from the first "[" to the last "]".
_BRACKETED = re.compile(r"\[[\s\S]*\]")
_LEADING_INT = re.compile(r"^\s*[-+]?\d+")

SNIPPET_LINES_BEFORE = 2
SNIPPET_LINES_AFTER = 2


def normalize_severity(value: Any) -> Severity:
    """Map any model-reported severity onto CRITICAL/HIGH/MEDIUM/LOW; unknown values become MEDIUM."""
    if not isinstance(value, str):
        return _DEFAULT_SEVERITY
    return _SEVERITY_ALIASES.get(value.strip().upper(), _DEFAULT_SEVERITY)


def coerce_line_number(value: Any) -> int:
    """Positive line number from whatever the model sent (42, "42", "42-45", 41.7); 1 when unusable."""
    if isinstance(value, bool):
        return 1
    if isinstance(value, int):
        n = value
    elif isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return 1
        n = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match:
            return 1
        n = int(match.group(0))
    else:
        return 1
    return n if n >= 1 else 1


def extract_code_snippet(content: str, line_number: int) -> str:
    """Return the lines from line_number-2 to line_number+2 (clamped), each prefixed with "N: "."""
    lines = content.split("\n")
    start = max(0, line_number - 1 - SNIPPET_LINES_BEFORE)
    end = min(len(lines), line_number + SNIPPET_LINES_AFTER)
    return "\n".join(f"{i + 1}: {lines[i]}" for i in range(start, end))


def parse_model_response(text: Any) -> list[dict[str, Any]]:
    """
    Pull the JSON array of findings out of a free-text model reply.

    Strategies in priority order: a ```json fenced block, then the first "[" to
    last "]" span anywhere in the text, then give up. Never raises; anything
    unparseable (or not a list) yields []. Non-object elements are dropped.
    """
    if not isinstance(text, str) or not text:
        return []
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        bracketed = _BRACKETED.search(text)
        if not bracketed:
            return []
        candidate = bracketed.group(0)
    try:
        parsed = json.loads(candidate)
    except (json.JSONDecodeError, RecursionError, ValueError) as e:
        logger.warning("Failed to parse model response as JSON: %s", e)
        return []
    if not isinstance(parsed, list):
        return []
    return [item for item in parsed if isinstance(item, dict)]


def _text_or(value: Any, default: str, max_length: int | None = None) -> str:
    if value is None:
        return default
    text = value if isinstance(value, str) else str(value)
    if not text.strip():
        return default
    return text[:max_length] if max_length is not None else text


def build_findings(
    items: list[dict[str, Any]],
    file: SourceFile,
    content: str,
) -> list[ExtractedFinding]:
    """Apply defaults, severity normalization, line coercion and snippets to parsed model items."""
    findings: list[ExtractedFinding] = []
    for item in items:
        line_number = coerce_line_number(item.get("lineNumber"))
        findings.append(
            ExtractedFinding(
                type=_text_or(item.get("type"), _DEFAULT_TYPE, TYPE_MAX_LENGTH),
                severity=normalize_severity(item.get("severity")),
                title=_text_or(item.get("title"), _DEFAULT_TITLE, TITLE_MAX_LENGTH),
                description=_text_or(item.get("description"), _DEFAULT_DESCRIPTION),
                impact=_text_or(item.get("impact"), _DEFAULT_IMPACT),
                recommendation=_text_or(item.get("recommendation"), _DEFAULT_RECOMMENDATION),
                file_path=file.path,
                file_name=file.name,
                line_number=line_number,
                code_snippet=extract_code_snippet(content, line_number),
                confidence=_text_or(item.get("confidence"), _DEFAULT_CONFIDENCE).upper()[:CONFIDENCE_MAX_LENGTH],
            )
        )
    return findings


def build_security_prompt(
    file: SourceFile,
    content: str,
    repository_language: str | None,
    max_chars: int = DEFAULT_PROMPT_MAX_CHARS,
) -> str:
    """Build the fixed-structure analysis prompt; content beyond max_chars is cut and marked."""
    code = content[:max_chars]
    if len(content) > max_chars:
        code = f"{code} {TRUNCATION_MARKER}"
    return f"""You are a security expert analyzing code for vulnerabilities. Analyze the following {file.name} file from a {repository_language or 'unknown'} project and identify security vulnerabilities.

File: {file.name}
Path: {file.path}
Language: {detect_language(file.name)}

Code Content:
```
{code}
```

For each vulnerability found, provide:

1. type: The category of vulnerability (e.g. SQL_INJECTION, XSS, CSRF)
2. severity: CRITICAL, HIGH, MEDIUM, or LOW
3. lineNumber: The approximate line where the issue occurs
4. title: A brief descriptive title
5. description: Detailed explanation of the vulnerability
6. impact: Potential security impact
7. recommendation: How to fix the vulnerability

Focus on:
- Input validation issues
- Authentication/Authorization flaws
- Injection vulnerabilities (SQL, Command, etc.)
- Cross-site scripting (XSS)
- Insecure direct object references
- Security misconfigurations and hardcoded secrets
- Cryptographic issues
- Business logic flaws
- Dependencies with known vulnerabilities

Format your response as a JSON array of vulnerability objects:

```json
[
  {{
    "type": "SQL_INJECTION",
    "severity": "HIGH",
    "lineNumber": 42,
    "title": "SQL Injection in user query",
    "description": "User input is directly concatenated into SQL query without sanitization",
    "impact": "Attackers could execute arbitrary SQL commands and access sensitive data",
    "recommendation": "Use parameterized queries or prepared statements"
  }}
]
```

If no vulnerabilities are found, return an empty array: []"""


class FindingExtractor:
    """Runs one model call per file and converts the reply into ExtractedFinding objects."""

    def __init__(self, model_client: ModelClient, settings: "Settings") -> None:
        self.model_client = model_client
        self.max_tokens = settings.SCAN_MODEL_MAX_TOKENS
        self.temperature = settings.OLLAMA_TEMPERATURE
        self.prompt_max_chars = settings.SCAN_PROMPT_MAX_CHARS

    async def extract(
        self,
        file: SourceFile,
        content: str,
        repository_language: str | None = None,
    ) -> list[ExtractedFinding]:
        """Return findings for one file; a failed model call yields []."""
        prompt = build_security_prompt(file, content, repository_language, self.prompt_max_chars)
        try:
            reply = await self.model_client.invoke(prompt, self.max_tokens, self.temperature)
        except ModelInvocationError as e:
            logger.warning("AI analysis failed for %s: %s", file.path, e.message)
            return []
        except Exception as e:
            logger.warning("AI analysis failed for %s: %s", file.path, e)
            return []
        return build_findings(parse_model_response(reply), file, content)
