"""
Auditor registry.

Each audit category maps to one plain :class:`Auditor` policy object holding
the file patterns that scope the audit and the guidance appended to the
shared master prompt. The set of categories is closed: adding one means
adding an entry to :data:`AUDITOR_REGISTRY`.

Example:
    >>> auditor = create_auditor("security")
    >>> context = AuditContext(owner="acme", repo="widgets", repo_path="/work/widgets")
    >>> prompt = auditor.build_prompt(context.repo_path, context)
    >>> auditor.get_file_patterns()[:2]
    ['**/*.ts', '**/*.js']
"""

from collections.abc import Iterable
from dataclasses import dataclass

from pydantic import BaseModel, Field

from backlog_agent.audit.prompts import build_master_prompt
from backlog_agent.enums import AuditCategory
from backlog_agent.exceptions import UnknownCategoryError


class AuditContext(BaseModel):
    """Repository an audit runs against, resolved by the caller."""

    owner: str = Field(..., description="Repository owner/organization")
    repo: str = Field(..., description="Repository name")
    repo_path: str = Field(..., description="Local checkout path")
    run_id: str | None = Field(default=None, description="Audit run identifier")
    max_budget_usd: float | None = Field(default=None, ge=0, description="Spend cap for the audit")


@dataclass(frozen=True)
class Auditor:
    """File scope and prompt text for one audit category."""

    category: AuditCategory
    display_name: str
    file_patterns: tuple[str, ...]
    guidance: str

    def get_file_patterns(self) -> list[str]:
        """Glob patterns of files the audit should focus on."""
        return list(self.file_patterns)

    def build_prompt(self, repo_path: str, context: AuditContext) -> str:
        """Instructions handed to the AI agent for this audit."""
        master = build_master_prompt(context.owner, context.repo, self.category)
        return f"{master}\n{self.guidance}\n\nRepository path: {repo_path}"


_SOURCE_PATTERNS = (
    "**/*.ts",
    "**/*.js",
    "**/*.tsx",
    "**/*.jsx",
    "**/*.py",
    "**/*.go",
    "**/*.java",
    "**/*.rb",
)

SECURITY_AUDITOR = Auditor(
    category=AuditCategory.SECURITY,
    display_name="Security Auditor",
    file_patterns=_SOURCE_PATTERNS
    + (
        "**/package.json",
        "**/requirements.txt",
        "**/Cargo.toml",
        "**/.env*",
        "**/config/**",
        "**/auth/**",
        "**/api/**",
    ),
    guidance="""## Security-Specific Analysis

### 1. Authentication & Authorization
- Missing or weak authentication checks, authorization bypasses
- Session management and token handling problems

### 2. Input Validation & Injection
- SQL, command and template injection
- Cross-site scripting and path traversal

### 3. Secrets & Credentials
- Hardcoded API keys, passwords or tokens
- Credentials in logs, error messages or committed config files

### 4. Data Protection & Cryptography
- Sensitive data exposure or missing encryption
- Weak algorithms (MD5, SHA1 for passwords), insecure randomness

### 5. Dependencies
- Known vulnerable or outdated security-critical packages, missing lockfiles

When reporting security findings include a CWE id where one applies, mark
critical/high findings with requiresPrivateDisclosure: true, and never
include exploit code or payloads.""",
)

DOCUMENTATION_AUDITOR = Auditor(
    category=AuditCategory.DOCUMENTATION,
    display_name="Documentation Auditor",
    file_patterns=(
        "README*",
        "readme*",
        "CONTRIBUTING*",
        "CODE_OF_CONDUCT.md",
        "LICENSE*",
        "CHANGELOG*",
        "docs/**",
        "documentation/**",
        "**/package.json",
        "**/setup.py",
        "**/pyproject.toml",
        "**/*.md",
    ),
    guidance="""## Documentation-Specific Analysis

### 1. README Quality
- Purpose, prerequisites, installation and quick start
- Working usage examples

### 2. API Documentation
- Public functions documented with parameters, return values and errors

### 3. Contributing Guide
- Development setup, code style, pull request and issue process

### 4. Other Documentation
- LICENSE, CHANGELOG, CODE_OF_CONDUCT, architecture and deployment docs

### 5. Code Comments
- Complex logic explained, outdated comments, untracked TODO/FIXME

Severity guidelines for documentation:
- **high**: Missing README, no installation instructions, public API undocumented
- **medium**: Incomplete setup guide, missing CONTRIBUTING.md, outdated examples
- **low**: Minor gaps, formatting issues""",
)

CODE_QUALITY_AUDITOR = Auditor(
    category=AuditCategory.CODE_QUALITY,
    display_name="Code Quality Auditor",
    file_patterns=_SOURCE_PATTERNS + ("**/*.rs", "**/*.cpp", "**/*.c", "**/*.cs"),
    guidance="""## Code Quality-Specific Analysis

### 1. Code Smells
- Duplicated code, long functions (>50 lines), deep nesting (>3 levels)
- Magic numbers and strings, god objects

### 2. Naming & Readability
- Unclear, misleading or inconsistent names

### 3. Error Handling
- Swallowed exceptions, missing handling around I/O
- Error messages lacking context

### 4. Code Organization
- Circular dependencies, mixed concerns, improper layering

### 5. Dead Code & Technical Debt
- Unused functions and imports, commented-out code, stale TODO/FIXME/HACK

### 6. Type Safety
- Missing annotations, unsafe casts, nullable reference issues

Severity guidelines:
- **high**: Major architectural issues, critical error handling gaps
- **medium**: Significant code smells, notable technical debt
- **low**: Minor style issues, optional refactoring""",
)

PERFORMANCE_AUDITOR = Auditor(
    category=AuditCategory.PERFORMANCE,
    display_name="Performance Auditor",
    file_patterns=_SOURCE_PATTERNS
    + (
        "**/*.sql",
        "**/queries/**",
        "**/api/**",
        "**/components/**",
        "**/pages/**",
    ),
    guidance="""## Performance-Specific Analysis

### 1. Database & Queries
- N+1 queries, unbounded queries, missing pagination or indexes

### 2. Algorithm Complexity
- O(n^2) or worse work on large data, repeated expensive computations

### 3. Memory & Resources
- Leaks, unbounded caches, loading large files into memory

### 4. I/O & Network
- Blocking I/O in async code, missing batching or connection pooling
- Sequential operations that could run in parallel

### 5. Concurrency
- Race conditions, unnecessary locks

Severity guidelines:
- **critical**: Exponential algorithms on user data, memory leaks in hot paths
- **high**: N+1 queries, O(n^2) on large datasets
- **medium**: Suboptimal queries, missing caching
- **low**: Minor optimizations""",
)

TEST_COVERAGE_AUDITOR = Auditor(
    category=AuditCategory.TEST_COVERAGE,
    display_name="Test Coverage Auditor",
    file_patterns=(
        "**/*.test.ts",
        "**/*.test.js",
        "**/*.spec.ts",
        "**/*.spec.js",
        "**/test/**",
        "**/tests/**",
        "**/__tests__/**",
        "**/test_*.py",
        "**/*_test.py",
        "**/*_test.go",
        "**/*Test.java",
        "jest.config.*",
        "vitest.config.*",
        "pytest.ini",
        "setup.cfg",
        ".coveragerc",
        "src/**/*.ts",
        "src/**/*.js",
        "lib/**/*.ts",
        "lib/**/*.js",
    ),
    guidance="""## Test Coverage-Specific Analysis

### 1. Test Infrastructure
- Test framework configured, tests run in CI, coverage reported

### 2. Critical Path Coverage
- Authentication, billing, validation, API endpoints and error paths

### 3. Test Quality
- Tests without meaningful assertions, brittle or flaky tests, over-mocking

### 4. Missing Test Types
- Unit, integration, edge case and error condition tests

### 5. Coverage Gaps by Module
- Complex source files or public APIs without corresponding tests

Severity guidelines:
- **critical**: Authentication/security or payment code untested
- **high**: Core API endpoints or business logic untested
- **medium**: Utilities or edge cases untested
- **low**: Could benefit from more tests""",
)

AUDITOR_REGISTRY: dict[AuditCategory, Auditor] = {
    AuditCategory.SECURITY: SECURITY_AUDITOR,
    AuditCategory.DOCUMENTATION: DOCUMENTATION_AUDITOR,
    AuditCategory.CODE_QUALITY: CODE_QUALITY_AUDITOR,
    AuditCategory.PERFORMANCE: PERFORMANCE_AUDITOR,
    AuditCategory.TEST_COVERAGE: TEST_COVERAGE_AUDITOR,
}


def is_valid_category(category: str) -> bool:
    """Check if ``category`` names a registered audit category."""
    try:
        return AuditCategory(category) in AUDITOR_REGISTRY
    except ValueError:
        return False


def create_auditor(category: str) -> Auditor:
    """Get the auditor for a category.

    Raises:
        UnknownCategoryError: If the category is not registered.
    """
    if not is_valid_category(category):
        raise UnknownCategoryError(str(category))
    return AUDITOR_REGISTRY[AuditCategory(category)]


def create_auditors(categories: Iterable[str]) -> list[Auditor]:
    """Get auditors for several categories, in the given order.

    Raises:
        UnknownCategoryError: On the first unknown category.
    """
    return [create_auditor(category) for category in categories]


def get_available_categories() -> list[AuditCategory]:
    return list(AUDITOR_REGISTRY)
