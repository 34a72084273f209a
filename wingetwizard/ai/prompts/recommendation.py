"""
Upgrade Recommendation Prompts

Two-stage prompt set:
- Research prompt: asks a search-backed provider for facts about the
  package and the version change. Output is free text.
- Format prompt: asks a generative provider to turn the research into a
  fixed-section markdown report.

Package fields are HTML-escaped before interpolation so that names and
versions cannot inject markup or instructions into the report layout.
"""

import html
from typing import List

from ...models import PackageRecord

# Written into PackageRecord.recommendation when an item cannot be analyzed
FAILURE_MARKER = "AI analysis failed - no recommendation generated"

RESEARCH_SYSTEM_PROMPT = (
    "You are a software research assistant. Provide factual, current information "
    "about software packages, versions, security issues, and changes. "
    "Focus on facts, not formatting."
)

# Sections the format stage must produce, in order
REQUIRED_SECTIONS: List[str] = [
    "Application Overview",
    "Executive Summary",
    "Version Changes",
    "Key Improvements",
    "Security Assessment",
    "Compatibility & Risks",
    "Recommendation Timeline",
    "Action Items",
]

# fmt: off
RESEARCH_PROMPT_TEMPLATE = """\
Research the software application {name} (package: {package_id}) and its upgrade \
from version {current} to {available}.

Provide comprehensive information about:

**Application Overview:**
1. What is {name} and what does it do?
2. Who develops/maintains this software?
3. What category/type of application is it?
4. Is it free, paid, or freemium?
5. What are its main features and use cases?

**Version Analysis:**
6. What changed between version {current} and {available}?
7. Any security fixes or vulnerabilities addressed?
8. New features, improvements, or enhancements?
9. Known issues, bugs fixed, or breaking changes?
10. Performance improvements or system requirement changes?

**Security & Trust:**
11. Any recent security incidents or vulnerabilities?
12. Developer reputation and trustworthiness?

**User Impact:**
13. Should users upgrade immediately or wait?
14. Any compatibility concerns with other software?
15. Release date and stability information

Focus on facts and current information. Do not format the response."""

FORMAT_PROMPT_TEMPLATE = """\
# Software Analysis & Upgrade Report: {name}

You are a senior software analyst. Format the following research data into a \
comprehensive software analysis and upgrade recommendation report.

## Research Data:
{research}

## Package Details:
- **Package ID**: `{package_id}`
- **Current Version**: `{current}`
- **Available Version**: `{available}`

## Required Report Format:

Provide your analysis in this **exact markdown structure**:

### Application Overview
- **Software Name**: {name}
- **Developer/Publisher**: [From research]
- **Category**: [Application type/category]
- **License**: [Free/Paid/Freemium]
- **Primary Purpose**: [What the software does]

### Executive Summary
> RECOMMENDED / CONDITIONAL / NOT RECOMMENDED

Brief 1-2 sentence recommendation with urgency level.

### Version Changes
- **Current Version**: `{current}`
- **Target Version**: `{available}`
- **Update Type**: Major / Minor / Patch / Breaking
- **Release Date**: [Date if available]

### Key Improvements
- **New Features**: List major new functionality
- **Bug Fixes**: Critical issues resolved
- **Performance**: Speed/resource impact changes

### Security Assessment
- **Security Fixes**: List any CVE fixes or security patches
- **Vulnerability Status**: Current security standing
- **Risk Level**: Low / Medium / High / Critical

### Compatibility & Risks
- **Breaking Changes**: List any breaking changes
- **Dependencies**: New requirements or conflicts
- **Migration Effort**: None / Minor / Significant

### Recommendation Timeline
- **Immediate** (Security/Critical)
- **Within 1 week** (Important updates)
- **Within 1 month** (Regular updates)
- **When convenient** (Optional updates)

### Action Items
- Pre-upgrade, upgrade and post-upgrade steps as a short checklist.

Use only information supported by the research data. Write "Unknown" where \
the research does not say."""
# fmt: on


def _escaped_fields(record: PackageRecord) -> dict:
    return {
        "name": html.escape(record.name or ""),
        "package_id": html.escape(record.id or ""),
        "current": html.escape(record.installed_version or "Unknown"),
        "available": html.escape(record.available_version or "Unknown"),
    }


def build_research_prompt(record: PackageRecord) -> str:
    """
    Build the stage-one research prompt for a package.

    Args:
        record: Package with name, id and version fields

    Returns:
        Prompt text
    """
    return RESEARCH_PROMPT_TEMPLATE.format(**_escaped_fields(record))


def build_format_prompt(record: PackageRecord, research_text: str) -> str:
    """
    Build the stage-two formatting prompt.

    Args:
        record: Package metadata
        research_text: Free text returned by the research stage

    Returns:
        Prompt text requesting every section in REQUIRED_SECTIONS
    """
    return FORMAT_PROMPT_TEMPLATE.format(research=research_text.strip(), **_escaped_fields(record))
