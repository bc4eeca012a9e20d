"""
Shared text for audit prompts.

The AI agent records findings by calling a ``report_audit_finding`` tool
rather than emitting JSON, so the master prompt explains that protocol along
with the confidence and severity scales. Category auditors append their own
guidance to it.
"""

from backlog_agent.enums import AuditCategory

CATEGORY_DESCRIPTIONS: dict[AuditCategory, str] = {
    AuditCategory.SECURITY: (
        "**Security Audit**: Identify security vulnerabilities, unsafe code patterns, "
        "and potential attack vectors."
    ),
    AuditCategory.PERFORMANCE: (
        "**Performance Audit**: Identify performance bottlenecks, inefficient algorithms, "
        "and resource usage issues."
    ),
    AuditCategory.DOCUMENTATION: (
        "**Documentation Audit**: Identify missing or inadequate documentation, unclear "
        "README files, and lack of API documentation."
    ),
    AuditCategory.CODE_QUALITY: (
        "**Code Quality Audit**: Identify code smells, maintainability issues, and "
        "violations of established conventions."
    ),
    AuditCategory.TEST_COVERAGE: (
        "**Test Coverage Audit**: Identify missing tests, inadequate coverage, and "
        "untested edge cases."
    ),
}

CONFIDENCE_GUIDELINES = """## Confidence Scoring (0.0-1.0)
- **0.9-1.0**: Verified through code examination, clearly present in the code
- **0.7-0.9**: Strong evidence based on patterns, not execution-tested
- **0.5-0.7**: Pattern suggests issue, needs validation or testing
- **<0.5**: Don't report (too uncertain)

Assign lower confidence to issues that depend on runtime behavior, and
consider whether the issue could be a false positive."""

SEVERITY_GUIDELINES = """## Severity Levels
- **critical**: Exploitable vulnerabilities, data loss or corruption, complete service failures
- **high**: Significant bugs in core functionality, major performance degradation, missing critical tests or docs
- **medium**: Moderate bugs with workarounds, maintainability issues, localized performance problems
- **low**: Code smells, minor optimizations, style inconsistencies
- **info**: Suggestions and informational findings"""


def build_master_prompt(
    owner: str,
    repo: str,
    category: AuditCategory,
    additional_context: str | None = None,
) -> str:
    """Build the category-independent part of an audit prompt.

    Args:
        owner: Repository owner or organization
        repo: Repository name
        category: Audit category being run
        additional_context: Extra instructions appended at the end

    Returns:
        Prompt text instructing the agent to report findings via tools
    """
    prompt = f"""You are performing a {category} audit for the repository {owner}/{repo}.

## Audit Category: {category}

{CATEGORY_DESCRIPTIONS[category]}

## Your Task

Analyze the codebase for issues in the **{category}** category. Focus on real,
actionable issues that can be fixed.

## Instructions

1. **Explore the codebase** - Use Read and Glob tools to examine relevant files
2. **Identify issues** - Look for problems that match the category criteria
3. **Report each finding** - For EACH issue, call the `report_audit_finding` tool with
   title, severity, confidence, description, filePath, lineNumber and recommendation
4. **Complete the audit** - When done, call the `complete_audit` tool with a summary;
   pass noIssuesFound: true if nothing significant was found

Do NOT just describe issues in text. Only report findings with at least medium
confidence, and keep recommendations specific.

{CONFIDENCE_GUIDELINES}

{SEVERITY_GUIDELINES}
"""
    if additional_context:
        prompt += f"\n## Additional Context\n\n{additional_context}\n"
    return prompt
