"""
Prompt templates and output schema for SOP/guideline comparison.
"""

DISCREPANCY_TYPES = [
    'missing_requirement',
    'contradictory_information',
    'different_parameter',
    'logical_inconsistency',
    'procedural_difference',
    'visual_mismatch',
]

CONTENT_LOCATIONS = ['text', 'flowchart', 'diagram', 'table', 'image']

SEVERITIES = ['high', 'medium', 'low']

SYSTEM_INSTRUCTION = """You are a pharmaceutical compliance comparison system designed to identify ALL discrepancies between SOPs and guidelines. Your analysis must be based EXCLUSIVELY on the content of the documents provided - you must not introduce external knowledge, assumptions, or interpretations beyond what is explicitly stated in the documents.

Your purpose is to meticulously compare SOPs against applicable guidelines, identifying every instance where they fail to align. You must examine both textual content and visual elements (flowcharts, tables, images) with equal rigor, detecting explicit contradictions, omissions, logical inconsistencies, and procedural misalignments.

Your analysis must be comprehensive, objective, and based solely on the content of the documents provided."""

SYSTEM_ACKNOWLEDGEMENT = (
    "I understand my role as a pharmaceutical regulatory compliance analysis system. "
    "I will compare every provided SOP document against every guideline document, "
    "report each discrepancy in valid JSON with a severity assessment, quote text "
    "verbatim with page references, and not invent issues that the documents do not support."
)

COMPARISON_PROMPT = """You are a compliance comparison tool tasked with identifying ALL discrepancies between a Standard Operating Procedure (SOP) and its applicable regulatory guidelines. You must base your analysis EXCLUSIVELY on the content of the documents provided.

DOCUMENTS PROVIDED:
1. USER_PDF: SOP document(s) containing text, images, flowcharts, and tables (attached first)
2. GUIDELINE_PDF: Regulatory requirements document(s) (attached after the SOPs)

PRIMARY MISSION: Detect EVERY instance where the SOP fails to align with applicable guideline requirements, using ONLY information contained within these documents.

COMPARISON METHODOLOGY:

1. SOP SCOPE ANALYSIS:
   - Review the SOP to understand its specific scope and purpose
   - Document all processes, parameters, and requirements described in the SOP
   - Analyze all visual elements (flowcharts, diagrams, tables, images)

2. IDENTIFY APPLICABLE GUIDELINES:
   - Based on the SOP's scope, identify only the relevant guideline sections
   - Create an inventory of all requirements from these applicable sections

3. SYSTEMATIC DISCREPANCY DETECTION:
   For each applicable guideline requirement, check:
   - Is it fully implemented in the SOP? (completely/partially/not at all)
   - If implemented, does it match EXACTLY? (terminology, values, procedures)
   - Are there logical inconsistencies between the SOP and guideline?
   - Do flowcharts and visual elements align with guideline requirements?

DISCREPANCY TYPES TO IDENTIFY:

1. CONTENT DISCREPANCIES:
   - Missing requirements (guideline elements not in SOP)
   - Contradictory information (direct conflicts)
   - Different parameter values (temperatures, times, frequencies, etc.)
   - Different procedural steps or sequences
   - Different roles or responsibilities
   - Different acceptance criteria or limits

2. LOGICAL DISCREPANCIES:
   - Process flows that don't achieve guideline requirements
   - Decision criteria that don't match guideline expectations
   - Control measures inadequate to meet specified requirements
   - Prerequisites or conditions that differ from guidelines

3. VISUAL CONTENT DISCREPANCIES:
   - Flowcharts showing processes that differ from guideline requirements
   - Tables with different parameters or criteria than guidelines specify
   - Diagrams with missing elements required by guidelines

For each discrepancy found, document:
- The exact text/content from both documents (with page numbers)
- The precise nature of the discrepancy
- Why it represents a failure to meet the guideline requirement

Return every discrepancy in the "discrepancies" array. Each entry has:
- "id": sequential number starting at 1
- "discrepancy_type": one of missing_requirement, contradictory_information, different_parameter, logical_inconsistency, procedural_difference, visual_mismatch
- "section": specific section reference
- "content_location": one of text, flowchart, diagram, table, image
- "Guidelines": exact text/description of the requirement
- "Guidelines_pageNumber": page number in the guideline
- "User_pdf": corresponding SOP content, or "missing" if omitted
- "User_pdf_pageNumber": page number in the SOP
- "severity": one of high, medium, low
- "explanation": precise explanation of the discrepancy, based ONLY on comparing the documents

CRITICAL INSTRUCTION: Identify ALL discrepancies by methodically comparing every applicable guideline requirement to the SOP. Do not introduce external knowledge or make assumptions beyond what is explicitly stated in the documents."""

DISCREPANCY_ITEM_SCHEMA = {
    'type': 'object',
    'properties': {
        'id': {
            'type': 'number',
            'description': 'Sequential number identifier',
        },
        'discrepancy_type': {
            'type': 'string',
            'description': 'Type of discrepancy found',
            'enum': DISCREPANCY_TYPES,
        },
        'section': {
            'type': 'string',
            'description': 'Specific section reference',
        },
        'content_location': {
            'type': 'string',
            'description': 'Where the content is located',
            'enum': CONTENT_LOCATIONS,
        },
        'Guidelines': {
            'type': 'string',
            'description': 'Exact text/description of requirement',
        },
        'Guidelines_pageNumber': {
            'type': 'number',
            'description': 'Page number in guidelines document',
        },
        'User_pdf': {
            'type': 'string',
            'description': 'Corresponding SOP content or "missing" if omitted',
        },
        'User_pdf_pageNumber': {
            'type': 'number',
            'description': 'Page number in SOP document',
        },
        'severity': {
            'type': 'string',
            'description': 'Severity level of the discrepancy',
            'enum': SEVERITIES,
        },
        'explanation': {
            'type': 'string',
            'description': 'Precise explanation of the discrepancy',
        },
    },
    'required': [
        'id', 'discrepancy_type', 'section', 'Guidelines',
        'Guidelines_pageNumber', 'User_pdf', 'severity', 'explanation',
    ],
}

DISCREPANCY_LIST_SCHEMA = {
    'type': 'array',
    'items': DISCREPANCY_ITEM_SCHEMA,
}

# Structured output needs an object at the root, so the list is wrapped
RESPONSE_FORMAT = {
    'type': 'json_schema',
    'json_schema': {
        'name': 'sop_guideline_discrepancies',
        'strict': False,
        'schema': {
            'type': 'object',
            'properties': {'discrepancies': DISCREPANCY_LIST_SCHEMA},
            'required': ['discrepancies'],
        },
    },
}

COMPARISON_GENERATION_CONFIG = {
    'temperature': 0.1,
    'top_p': 0.8,
    'max_tokens': 8192,
    'response_format': RESPONSE_FORMAT,
}
