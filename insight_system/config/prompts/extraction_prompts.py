"""Prompt templates for the four generative extraction passes.

Every pass shares one system prompt and one response contract:
{"facts": [{section, statement, key, value, confidence, extraction_method}]}.
Statements must be complete and self-contained; bare values ("51%",
"300 MW") are useless once separated from their document.

User templates take {document_type} and {document_text}.
"""

EXTRACTION_SYSTEM_PROMPT = """You are an expert at extracting structured information from renewable energy project documents. Extract facts as complete contextual statements in JSON format.

Respond with a single JSON object of the form:
{"facts": [{"section": "...", "statement": "...", "key": "...", "value": "...", "confidence": 0.0, "extraction_method": "..."}]}

Return {"facts": []} when nothing relevant is present."""


STRUCTURED_DATA_PROMPT = """Extract structured information from this {document_type} document and present each fact as a complete, contextual statement.

Document text:
{document_text}

Extract information in these sections:
- Project_Overview: project identity, partners, ownership structure, location
- Technical_Design: capacity, technology, equipment specifications, configuration
- Grid_Infrastructure: connection details, voltage levels, distances, grid operator
- Site_Details: area, topography, access, geographical context
- Project_Timeline: key milestones with dates and descriptions
- Financial_Structure: ownership percentages, investment, commercial terms
- Regulatory_Compliance: permits, approvals, required studies

Each fact must make sense on its own.

GOOD:
- "The project is a 300 MWp DC solar facility located near Duqm in the AlWusta governorate"
- "The utility partner holds a 51% ownership stake and the developer holds 49%"
- "The plant will connect via a 132kV line-in-line-out at the substation, with a future 400kV line 4km away"

BAD:
- "7 Aug 2025" (missing context)
- "51%" (what does this percentage represent?)
- "300 MW" (DC or AC? capacity of what?)

For each fact provide section, statement, key (short snake_case identifier such as "dc_capacity_mw"), value (the core extracted value), confidence (0.0-1.0) and extraction_method "llm_structured_v2"."""


RELATIONSHIPS_PROMPT = """Identify critical relationships and dependencies in this {document_type} document.

Document text:
{document_text}

Identify:
1. Critical dependencies (what depends on what)
2. Timing constraints (sequencing requirements)
3. Capacity/sizing relationships (how components are sized relative to requirements)
4. Operational relationships (how systems interact)

Express each relationship as a complete statement explaining the dependency.

GOOD:
- "Solar plant COD must align with the offtaker facility COD (January 2028) to meet its carbon neutrality commitment"
- "Full ESIA study depends on completion of ESIA scoping to define the assessment scope"

For each relationship provide section "Dependencies", statement, key, value, confidence (0.0-1.0) and extraction_method "llm_relationships_v2"."""


RISKS_PROMPT = """Identify risks, concerns, and potential issues in this {document_type} document.

Document text:
{document_text}

Look for:
1. Explicitly stated risks or concerns
2. Site changes or relocations (indicates previous problems)
3. Schedule pressure or tight timelines
4. Pending critical approvals
5. Technical constraints or limitations
6. Environmental or social challenges

Explain each risk with context about why it matters.

GOOD:
- "Project site was relocated due to technical complexities and cost implications, indicating inadequate initial site assessment"
- "Full ESIA is not expected until December 2025, leaving minimal time to mitigate significant environmental findings"

For each risk provide section "Risks_And_Issues", statement, key (e.g. "cod_schedule_risk"), value (brief summary), confidence (0.0-1.0) and extraction_method "llm_risks_v2"."""


ASSUMPTIONS_PROMPT = """Extract design assumptions and engineering parameters from this {document_type} document.

Document text:
{document_text}

Identify:
1. Design assumptions and their rationale
2. Technology selections with justification
3. Performance estimates and calculation basis
4. Key engineering parameters

Provide context for each assumption or parameter.

GOOD:
- "Ground coverage ratio set at 35% to optimize land use while keeping spacing for maintenance access"
- "Specific yield estimated at 2,500 kWh/kWp/year based on local solar resource data"

For each item provide section (one of "Engineering_Assumptions", "Technology_Choices", "Design_Parameters", "Performance_Estimates"), statement, key (e.g. "gcr_assumption"), value, confidence (0.0-1.0) and extraction_method "llm_assumptions_v2"."""


# (pass name, extraction method tag, user template)
EXTRACTION_PASSES: tuple[tuple[str, str, str], ...] = (
    ("structured", "llm_structured_v2", STRUCTURED_DATA_PROMPT),
    ("relationships", "llm_relationships_v2", RELATIONSHIPS_PROMPT),
    ("risks", "llm_risks_v2", RISKS_PROMPT),
    ("assumptions", "llm_assumptions_v2", ASSUMPTIONS_PROMPT),
)
