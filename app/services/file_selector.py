"""Select the files of a repository listing that are worth sending to the model."""

from collections.abc import Iterable

from app.schemas.findings import SourceFile

DEFAULT_MAX_FILE_BYTES = 1024 * 1024

# Source, web, infra and config extensions (lowercase, with the leading dot).
SCANNABLE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".js", ".jsx", ".ts", ".tsx", ".vue", ".svelte",
        ".py", ".rb", ".php", ".java", ".cs", ".cpp", ".c", ".cc",
        ".go", ".rs", ".swift", ".kt", ".scala", ".clj",
        ".sql", ".html", ".htm", ".xml", ".json", ".yaml", ".yml",
        ".sh", ".bash", ".ps1", ".dockerfile", ".tf", ".env",
    }
)

# Bare file names that matter for security regardless of extension.
SECURITY_RELEVANT_FILENAMES: frozenset[str] = frozenset(
    {
        "dockerfile",
        "docker-compose.yml",
        "docker-compose.yaml",
        "package.json",
        "package-lock.json",
        "requirements.txt",
        "pipfile",
        "pyproject.toml",
        "gemfile",
        "go.mod",
        "pom.xml",
        "build.gradle",
        "composer.json",
        "cargo.toml",
        ".env",
        ".env.example",
        ".htaccess",
        "makefile",
        "jenkinsfile",
    }
)

_LANGUAGES: dict[str, str] = {
    ".js": "JavaScript",
    ".jsx": "JavaScript (React)",
    ".ts": "TypeScript",
    ".tsx": "TypeScript (React)",
    ".vue": "Vue",
    ".svelte": "Svelte",
    ".py": "Python",
    ".rb": "Ruby",
    ".php": "PHP",
    ".java": "Java",
    ".cs": "C#",
    ".cpp": "C++",
    ".cc": "C++",
    ".c": "C",
    ".go": "Go",
    ".rs": "Rust",
    ".swift": "Swift",
    ".kt": "Kotlin",
    ".scala": "Scala",
    ".clj": "Clojure",
    ".sql": "SQL",
    ".html": "HTML",
    ".htm": "HTML",
    ".xml": "XML",
    ".json": "JSON",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".sh": "Shell",
    ".bash": "Bash",
    ".ps1": "PowerShell",
    ".tf": "Terraform",
    ".dockerfile": "Dockerfile",
}


def _extension(filename: str) -> str:
    """Lowercase extension including the dot, or "" when the name has none."""
    name = filename.lower()
    dot = name.rfind(".")
    if dot == -1:
        return ""
    return name[dot:]


def is_scannable(filename: str) -> bool:
    """True if the file name has an allowed extension or is a known security-relevant file."""
    name = (filename or "").strip().lower()
    if not name:
        return False
    return _extension(name) in SCANNABLE_EXTENSIONS or name in SECURITY_RELEVANT_FILENAMES


def select_scannable_files(
    files: Iterable[SourceFile],
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES,
) -> list[SourceFile]:
    """
    Return the files eligible for analysis, in listing order.

    A file is kept when is_scannable(name) holds and its size does not exceed
    max_file_bytes. Pure function: the same listing always yields the same list.
    """
    return [f for f in files if is_scannable(f.name) and f.size <= max_file_bytes]


def detect_language(filename: str) -> str:
    """Human-readable language hint for the prompt; "Unknown" when not recognized."""
    name = (filename or "").lower()
    if name == "dockerfile":
        return "Dockerfile"
    return _LANGUAGES.get(_extension(name), "Unknown")
