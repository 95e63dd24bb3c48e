"""Unit tests for the finding extractor: tolerant parsing, normalization, prompt, model failures."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from app.models.vulnerability import CONFIDENCE_MAX_LENGTH, TITLE_MAX_LENGTH, TYPE_MAX_LENGTH
from app.schemas.findings import SEVERITY_VALUES, SourceFile
from app.services.finding_extractor import (
    TRUNCATION_MARKER,
    FindingExtractor,
    build_findings,
    build_security_prompt,
    coerce_line_number,
    extract_code_snippet,
    normalize_severity,
    parse_model_response,
)
from app.services.model_client import ModelInvocationError

LOGIN_FILE = SourceFile(name="login.js", path="src/login.js", size=120)
LOGIN_CONTENT = "\n".join(f"line {i}" for i in range(1, 21))


def _settings() -> MagicMock:
    settings = MagicMock()
    settings.SCAN_MODEL_MAX_TOKENS = 4000
    settings.OLLAMA_TEMPERATURE = 0.1
    settings.SCAN_PROMPT_MAX_CHARS = 8000
    return settings


class TestNormalizeSeverity(unittest.TestCase):
    """Every input maps onto one of the four canonical severities."""

    def test_canonical_values_any_case(self) -> None:
        self.assertEqual(normalize_severity("critical"), "CRITICAL")
        self.assertEqual(normalize_severity(" High "), "HIGH")
        self.assertEqual(normalize_severity("LOW"), "LOW")

    def test_synonyms(self) -> None:
        self.assertEqual(normalize_severity("severe"), "CRITICAL")
        self.assertEqual(normalize_severity("Major"), "HIGH")
        self.assertEqual(normalize_severity("moderate"), "MEDIUM")
        self.assertEqual(normalize_severity("minor"), "LOW")
        self.assertEqual(normalize_severity("info"), "LOW")

    def test_totality(self) -> None:
        for value in (None, "", "bogus", 7, 3.5, [], {}, True, "критично"):
            with self.subTest(value=value):
                self.assertIn(normalize_severity(value), SEVERITY_VALUES)
        self.assertEqual(normalize_severity("bogus"), "MEDIUM")
        self.assertEqual(normalize_severity(None), "MEDIUM")


class TestCoerceLineNumber(unittest.TestCase):
    def test_values(self) -> None:
        self.assertEqual(coerce_line_number(42), 42)
        self.assertEqual(coerce_line_number("17"), 17)
        self.assertEqual(coerce_line_number("42-45"), 42)
        self.assertEqual(coerce_line_number(12.9), 12)
        self.assertEqual(coerce_line_number(0), 1)
        self.assertEqual(coerce_line_number(-5), 1)
        self.assertEqual(coerce_line_number("near the top"), 1)
        self.assertEqual(coerce_line_number(None), 1)
        self.assertEqual(coerce_line_number(True), 1)
        self.assertEqual(coerce_line_number(float("nan")), 1)


class TestExtractCodeSnippet(unittest.TestCase):
    def test_window_around_line(self) -> None:
        snippet = extract_code_snippet(LOGIN_CONTENT, 10)
        self.assertEqual(snippet, "8: line 8\n9: line 9\n10: line 10\n11: line 11\n12: line 12")

    def test_clamped_at_start_and_end(self) -> None:
        self.assertEqual(extract_code_snippet(LOGIN_CONTENT, 1), "1: line 1\n2: line 2\n3: line 3")
        self.assertEqual(extract_code_snippet(LOGIN_CONTENT, 20), "18: line 18\n19: line 19\n20: line 20")

    def test_line_past_end_is_empty(self) -> None:
        self.assertEqual(extract_code_snippet("only line", 50), "")


class TestParseModelResponse(unittest.TestCase):
    """Fenced block first, then bracket span, else []."""

    def test_fenced_block(self) -> None:
        text = (
            "I found these issues:\n```json\n"
            '[{"type":"SQL_INJECTION","severity":"HIGH","lineNumber":42,"title":"SQLi"}]\n'
            "```\nHope this helps."
        )
        items = parse_model_response(text)
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0]["type"], "SQL_INJECTION")
        self.assertEqual(items[0]["lineNumber"], 42)

    def test_fenced_block_after_preamble(self) -> None:
        text = "Sure, here are the issues:\n```json\n[{\"type\":\"XSS\",\"severity\":\"HIGH\",\"lineNumber\":10,\"title\":\"x\"}]\n```"
        items = parse_model_response(text)
        self.assertEqual(len(items), 1)
        self.assertEqual(normalize_severity(items[0]["severity"]), "HIGH")

    def test_no_issues_sentence(self) -> None:
        self.assertEqual(parse_model_response("No issues found."), [])

    def test_fence_tag_is_lowercase_json(self) -> None:
        # An upper-case tag is not a fenced block; the bracket scan still finds a lone array.
        self.assertEqual(parse_model_response('```JSON\n[{"type": "XSS"}]\n```'), [{"type": "XSS"}])
        reply = '```JSON\n[{"type": "XSS"}]\n```\nSee also [1]'
        self.assertEqual(parse_model_response(reply), [])
        self.assertEqual(parse_model_response(reply.replace("JSON", "json")), [{"type": "XSS"}])

    def test_prose_only(self) -> None:
        self.assertEqual(parse_model_response("The code looks secure. No issues found."), [])

    def test_empty_and_non_string(self) -> None:
        self.assertEqual(parse_model_response(""), [])
        self.assertEqual(parse_model_response(None), [])
        self.assertEqual(parse_model_response(42), [])

    def test_bare_array_in_prose(self) -> None:
        text = 'Findings: [{"type": "XSS", "severity": "LOW"}] end of report.'
        self.assertEqual(parse_model_response(text), [{"type": "XSS", "severity": "LOW"}])

    def test_bare_empty_array(self) -> None:
        self.assertEqual(parse_model_response("[]"), [])

    def test_malformed_json_yields_empty(self) -> None:
        self.assertEqual(parse_model_response('[{"type": "XSS", "severity": }]'), [])
        self.assertEqual(parse_model_response("```json\n[{not json}]\n```"), [])

    def test_fenced_block_preferred_over_other_brackets(self) -> None:
        text = 'See [1] below.\n```json\n[{"type": "CSRF"}]\n```'
        self.assertEqual(parse_model_response(text), [{"type": "CSRF"}])

    def test_non_list_json_yields_empty(self) -> None:
        self.assertEqual(parse_model_response('```json\n{"type": "XSS"}\n```'), [])

    def test_non_object_elements_dropped(self) -> None:
        text = '```json\n[{"type": "XSS"}, "stray", 3, null]\n```'
        self.assertEqual(parse_model_response(text), [{"type": "XSS"}])


class TestBuildFindings(unittest.TestCase):
    def test_defaults_applied(self) -> None:
        findings = build_findings([{}], LOGIN_FILE, LOGIN_CONTENT)
        self.assertEqual(len(findings), 1)
        finding = findings[0]
        self.assertEqual(finding.type, "UNKNOWN")
        self.assertEqual(finding.severity, "MEDIUM")
        self.assertEqual(finding.title, "Security Issue")
        self.assertEqual(finding.description, "No description provided")
        self.assertEqual(finding.impact, "Potential security risk")
        self.assertEqual(finding.recommendation, "Review code for security best practices")
        self.assertEqual(finding.line_number, 1)
        self.assertEqual(finding.confidence, "MEDIUM")
        self.assertEqual(finding.file_path, "src/login.js")
        self.assertEqual(finding.file_name, "login.js")

    def test_fields_and_snippet(self) -> None:
        items = [
            {
                "type": "HARDCODED_SECRET",
                "severity": "severe",
                "lineNumber": "5",
                "title": "API key in source",
                "confidence": "high",
            }
        ]
        finding = build_findings(items, LOGIN_FILE, LOGIN_CONTENT)[0]
        self.assertEqual(finding.severity, "CRITICAL")
        self.assertEqual(finding.line_number, 5)
        self.assertEqual(finding.confidence, "HIGH")
        self.assertIn("5: line 5", finding.code_snippet)

    def test_long_model_text_fits_columns(self) -> None:
        item = {
            "type": "INJECTION_" * 100,
            "title": "t" * 1000,
            "confidence": "very high " * 10,
            "description": "d" * 5000,
        }
        finding = build_findings([item], LOGIN_FILE, LOGIN_CONTENT)[0]
        self.assertEqual(len(finding.type), TYPE_MAX_LENGTH)
        self.assertEqual(len(finding.title), TITLE_MAX_LENGTH)
        self.assertEqual(finding.confidence, ("VERY HIGH " * 10)[:CONFIDENCE_MAX_LENGTH])
        self.assertEqual(len(finding.description), 5000)


class TestBuildSecurityPrompt(unittest.TestCase):
    def test_includes_file_metadata(self) -> None:
        prompt = build_security_prompt(LOGIN_FILE, "const x = 1;", "JavaScript")
        self.assertIn("File: login.js", prompt)
        self.assertIn("Path: src/login.js", prompt)
        self.assertIn("Language: JavaScript", prompt)
        self.assertIn("const x = 1;", prompt)
        self.assertNotIn(TRUNCATION_MARKER, prompt)

    def test_truncates_long_content(self) -> None:
        content = "a" * 100 + "TAIL"
        prompt = build_security_prompt(LOGIN_FILE, content, None, max_chars=100)
        self.assertIn("a" * 100 + " " + TRUNCATION_MARKER, prompt)
        self.assertNotIn("TAIL", prompt)


class TestFindingExtractor(unittest.TestCase):
    """extract() calls the model once and never raises."""

    def test_returns_findings_from_reply(self) -> None:
        model = MagicMock()
        model.invoke = AsyncMock(
            return_value='```json\n[{"type":"XSS","severity":"HIGH","lineNumber":3,"title":"Reflected XSS"}]\n```'
        )
        extractor = FindingExtractor(model, _settings())
        findings = asyncio.run(extractor.extract(LOGIN_FILE, LOGIN_CONTENT, "JavaScript"))
        self.assertEqual(len(findings), 1)
        self.assertEqual(findings[0].type, "XSS")
        self.assertEqual(findings[0].severity, "HIGH")
        model.invoke.assert_awaited_once()
        _, max_tokens, temperature = model.invoke.await_args.args
        self.assertEqual(max_tokens, 4000)
        self.assertEqual(temperature, 0.1)

    def test_model_failure_yields_empty(self) -> None:
        model = MagicMock()
        model.invoke = AsyncMock(side_effect=ModelInvocationError("Ollama is unreachable."))
        extractor = FindingExtractor(model, _settings())
        self.assertEqual(asyncio.run(extractor.extract(LOGIN_FILE, LOGIN_CONTENT)), [])

    def test_unexpected_error_yields_empty(self) -> None:
        model = MagicMock()
        model.invoke = AsyncMock(side_effect=RuntimeError("boom"))
        extractor = FindingExtractor(model, _settings())
        self.assertEqual(asyncio.run(extractor.extract(LOGIN_FILE, LOGIN_CONTENT)), [])

    def test_prose_reply_yields_empty(self) -> None:
        model = MagicMock()
        model.invoke = AsyncMock(return_value="Nothing to report.")
        extractor = FindingExtractor(model, _settings())
        self.assertEqual(asyncio.run(extractor.extract(LOGIN_FILE, LOGIN_CONTENT)), [])
