"""Prompt templates used by the consolidation pipeline.

Narrative synthesis returns prose. Domain and location extraction return a
JSON object whose fields are listed in {field_spec}; missing values are null.
"""

NARRATIVE_SYSTEM_PROMPT = (
    "You are a technical writing assistant. Synthesize the following project "
    "insights into a cohesive, flowing narrative suitable for executive review. "
    "Maintain all factual details but present them as connected prose rather "
    "than bullet points."
)

NARRATIVE_USER_PROMPT = """Section: {section_name}

Insights:
{facts_text}

Synthesize these insights into 2-3 well-structured paragraphs."""


DOMAIN_EXTRACTION_SYSTEM_PROMPT = (
    "You are a technical data extraction assistant. Extract information "
    "accurately and return valid JSON only."
)

PERFORMANCE_PARAMETERS_PROMPT = """You are extracting technical parameters for solar farm performance validation from a {document_type} document.

Return ONLY a JSON object with these fields (use null for missing values):
{field_spec}

IMPORTANT:
- Extract exact values as they appear in the document
- For tracking_type, standardize to: fixed_tilt, single_axis, or dual_axis
- For numeric fields, extract only the number (no units in the value)

Document text:
{document_text}"""

FINANCIAL_DATA_PROMPT = """You are extracting financial data (CapEx and OpEx) from a {document_type} document for solar farm benchmarking.

Return ONLY a JSON object with these fields (use null for missing values):
{field_spec}

IMPORTANT:
- Extract exact numeric values (no currency symbols or units)
- Convert all costs to USD if an exchange rate is provided
- For normalized metrics ($/W, $/MWh), calculate them if raw data is available

Document text:
{document_text}"""


LOCATION_SYSTEM_PROMPT = (
    "You are a location extraction specialist. Extract geographic coordinates, "
    "addresses, or city names from project documents."
)

LOCATION_USER_PROMPT = """Extract the project site location from these facts. Look for:
- Explicit coordinates (latitude/longitude)
- Site address or location description
- City/region/country names

Return ONLY a JSON object with these fields:
{field_spec}

Facts:
{facts_text}"""
