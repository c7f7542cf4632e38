"""Canonical section taxonomy and section-name normalization.

Extraction passes (and the model behind them) label facts with free-form
section names: "Grid_Infrastructure", "site details", "Technology_Choices".
These are folded into a small canonical set so that facts from different
documents and passes land in the same bucket.

normalize_section() is total: anything unrecognised maps to OTHER.
"""

import re
from typing import Optional

PROJECT_OVERVIEW = "Project_Overview"
FINANCIAL_STRUCTURE = "Financial_Structure"
TECHNICAL_DESIGN = "Technical_Design"
DEPENDENCIES = "Dependencies"
RISKS_AND_ISSUES = "Risks_And_Issues"
ENGINEERING_ASSUMPTIONS = "Engineering_Assumptions"
OTHER = "Other"

# Display order for UI listings
CANONICAL_SECTIONS: tuple[str, ...] = (
    PROJECT_OVERVIEW,
    FINANCIAL_STRUCTURE,
    TECHNICAL_DESIGN,
    DEPENDENCIES,
    RISKS_AND_ISSUES,
    ENGINEERING_ASSUMPTIONS,
    OTHER,
)

SECTION_DISPLAY_NAMES: dict[str, str] = {
    PROJECT_OVERVIEW: "Project Overview",
    FINANCIAL_STRUCTURE: "Financial Structure",
    TECHNICAL_DESIGN: "Technical Design",
    DEPENDENCIES: "Dependencies",
    RISKS_AND_ISSUES: "Risks & Issues",
    ENGINEERING_ASSUMPTIONS: "Engineering Assumptions",
    OTHER: "Other",
}

SECTION_DESCRIPTIONS: dict[str, str] = {
    PROJECT_OVERVIEW: "Project identity, location, ownership, and high-level context",
    FINANCIAL_STRUCTURE: "Financial arrangements, ownership stakes, and commercial structure",
    TECHNICAL_DESIGN: "Technical specifications, design parameters, and equipment details",
    DEPENDENCIES: "External dependencies, grid connections, and project relationships",
    RISKS_AND_ISSUES: "Identified risks, issues, constraints, and potential problems",
    ENGINEERING_ASSUMPTIONS: "Engineering assumptions, design basis, and calculation parameters",
    OTHER: "Uncategorized or miscellaneous information",
}

# Synonyms are matched after lower-casing; both space and underscore forms
# are generated from the phrases below.
_SYNONYM_PHRASES: dict[str, tuple[str, ...]] = {
    PROJECT_OVERVIEW: (
        "project overview",
        "project identity",
        "project details",
        "site details",
        "site characteristics",
        "site conditions",
    ),
    FINANCIAL_STRUCTURE: (
        "financial structure",
        "financial",
        "operational relationships",
    ),
    TECHNICAL_DESIGN: (
        "technical design",
        "technical",
        "technical specifications",
        "specification",
        "design parameters",
        "technology choice",
        "technology choices",
        "capacity/sizing",
        "capacity sizing",
        "energy performance",
        "performance estimate",
        "performance estimates",
    ),
    DEPENDENCIES: (
        "dependencies",
        "grid connection",
        "grid infrastructure",
        "sequencing requirements",
        "project timeline",
        "timeline",
        "timing constraints",
        "planning",
        "regulatory",
        "regulatory compliance",
    ),
    RISKS_AND_ISSUES: (
        "risks and issues",
        "risks",
        "risk",
    ),
    ENGINEERING_ASSUMPTIONS: (
        "engineering assumptions",
        "engineering assumption",
    ),
}


def _build_synonym_map() -> dict[str, str]:
    mapping: dict[str, str] = {}
    for canonical, phrases in _SYNONYM_PHRASES.items():
        for phrase in phrases:
            mapping[phrase] = canonical
            mapping[phrase.replace(" ", "_")] = canonical
    return mapping


SECTION_NORMALIZATION_MAP: dict[str, str] = _build_synonym_map()

_CANONICAL_BY_LOWER = {name.lower(): name for name in CANONICAL_SECTIONS}


def normalize_section(section_name: Optional[str]) -> str:
    """
    Normalize a raw section label to its canonical form.

    Args:
        section_name: Raw section name from storage or model extraction.

    Returns:
        Canonical section name; OTHER when no mapping is found.
    """
    if not section_name:
        return OTHER

    normalized = section_name.lower().strip()

    exact = _CANONICAL_BY_LOWER.get(normalized)
    if exact:
        return exact

    return SECTION_NORMALIZATION_MAP.get(normalized, OTHER)


def get_section_display_name(canonical_section: str) -> str:
    """Human-readable name for a canonical section."""
    return SECTION_DISPLAY_NAMES.get(canonical_section, canonical_section)


def get_section_description(canonical_section: str) -> str:
    return SECTION_DESCRIPTIONS.get(canonical_section, "")


_KEY_SEPARATORS = re.compile(r"[^a-z0-9]+")


def canonicalize_key(raw_key: Optional[str], section: Optional[str] = None) -> str:
    """
    Fold a model-supplied short key into a stable snake_case canonical key.

    "DC Capacity (MW)" and "dc_capacity_mw" both become "dc_capacity_mw".
    An empty key falls back to the lower-cased canonical section.
    """
    folded = _KEY_SEPARATORS.sub("_", (raw_key or "").lower()).strip("_")
    if folded:
        return folded
    return normalize_section(section).lower()
