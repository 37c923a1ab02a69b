from __future__ import annotations

NORMALIZE_SYSTEM_PROMPT = (
    "Output ONLY JSON that strictly matches the schema. "
    "Keep arrays within limits; do not invent data."
)

# One synthetic, de-identified sample anchoring the output format.
NORMALIZE_FEW_SHOT_USER = "\n".join(
    [
        "BACKGROUND:",
        "Public-sector researcher transitioning to industry data roles; focus on analytics and evaluation.",
        "RESUME:",
        "Education: Ph.D. in Behavioral Science (2016); B.S. in Marketing (1989).",
        "Experience: Senior Researcher (2022-present) - led adolescent health projects; Policy Analyst (2017-2018).",
        "Skills: sql, data analysis, program evaluation, dashboards.",
    ]
)

NORMALIZE_FEW_SHOT_ASSISTANT = {
    "name": "Candidate Name",
    "contact": {"email": None, "phone": None, "location": "Atlanta, GA", "links": []},
    "summary": "Experienced researcher with expertise in data analysis and program evaluation",
    "education": [
        {"degree": "Ph.D.", "field": "Behavioral Science", "institution": "University", "year": "2016"},
        {"degree": "B.S.", "field": "Marketing", "institution": "University", "year": "1989"},
    ],
    "skills": ["sql", "data analysis", "program evaluation", "dashboards"],
    "certifications": [],
    "experience": [
        {
            "title": "Senior Researcher",
            "org": "Public Health Agency",
            "location": "Atlanta, GA",
            "start": "2022",
            "end": None,
            "bullets": [
                "led adolescent health research and evaluation projects",
                "delivered insights to inform policy",
            ],
            "skills": ["public health", "evaluation", "data analysis"],
        },
        {
            "title": "Policy Analyst",
            "org": "Education Nonprofit",
            "location": "Atlanta, GA",
            "start": "2017",
            "end": "2018",
            "bullets": ["managed policy initiatives and multi-sector partnerships"],
            "skills": ["partnerships", "policy analysis"],
        },
    ],
}

NORMALIZE_USER_PROMPT = """
BACKGROUND:
{background}

RESUME:
{resume_text}
""".strip()

PROPOSE_ROLES_SYSTEM_PROMPT = """
Propose realistic private-sector next-step roles for a government background.
Return ONLY JSON matching the schema. Keep descriptions concise (100-200 words).
Give each candidate a score from 0 to 100 for fit and a confidence from 0 to 1.
""".strip()

PROPOSE_ROLES_USER_PROMPT = """
BACKGROUND:
{background}

RESUME_JSON:
{resume_json}
""".strip()

SHORT_JD_SYSTEM_PROMPT = "Write a concise job description (60-120 words) for the given role. No preamble, plain text."

SHORT_JD_USER_PROMPT = "ROLE TITLE: {title}"

REQUIREMENTS_SYSTEM_PROMPT = """
Extract the must_have and nice_to_have requirements from the job description.
Return ONLY JSON matching the schema with concise skill/tech phrases.
""".strip()

REQUIREMENTS_USER_PROMPT = """
TITLE: {title}

JOB DESCRIPTION:
{job_description}
""".strip()

MAPPING_SYSTEM_PROMPT = """
Map each requirement to matched skills and evidence from the resume.
Return ONLY JSON matching the schema. Evidence are short bullet snippets (<= 220 chars).
""".strip()

MAPPING_USER_PROMPT = """
RESUME_JSON:
{resume_json}

REQUIREMENTS:
{requirements_json}
""".strip()

REWRITE_BULLETS_SYSTEM_PROMPT = (
    "Rewrite resume bullets tailored to the role. 3-6 bullets. Strong verbs, quantification, "
    'industry phrasing. Return each bullet as a line prefixed with "- ".'
)

REWRITE_BULLETS_USER_PROMPT = """
ROLE: {title}
MAPPING:
{mapping_json}
""".strip()

EXPERIENCE_REWRITE_SYSTEM_PROMPT = """
You are a resume expert. Rewrite experience section bullets to be tailored for a specific role.
For each job, rewrite the bullets to highlight relevant skills and achievements for the target role.
Keep the same number of bullets per job and the same job order.
Return ONLY JSON matching the schema: an "experience" array with one "bullets" array per job.
""".strip()

EXPERIENCE_REWRITE_USER_PROMPT = """
TARGET ROLE: {title}

CURRENT EXPERIENCE:
{experience_listing}

MAPPING (skills/requirements for this role):
{mapping_json}
""".strip()

ASSEMBLE_DRAFT_SYSTEM_PROMPT = (
    "Assemble a role-tailored resume as plain text sections: Summary, Skills, "
    "Experience (use provided bullets), Education (placeholder)."
)

ASSEMBLE_DRAFT_USER_PROMPT = """
TITLE: {title}
BACKGROUND: {background}
BULLETS: {bullets_json}
REQUIREMENTS: {requirements_json}
MAPPING: {mapping_json}
""".strip()

TRANSFORM_SYSTEM_PROMPT = """
You rewrite resume bullets according to an instruction.
Return ONLY JSON that matches the schema (no prose).
You must return EXACTLY {count} bullets in the array, in the same order as the input.
""".strip()

TRANSFORM_LINES_SYSTEM_PROMPT = (
    "You are rewriting resume bullets. Return EXACTLY {count} bullets, one per line, "
    "in the same order as the input. No introduction, no explanation, just the rewritten bullets."
)

TRANSFORM_USER_PROMPT = """
INSTRUCTION: {instruction}
INPUT BULLETS ({count}):
{listing}

Return exactly {count} rewritten bullets.
""".strip()

INTENT_SYSTEM_PROMPT = """
You turn a resume-editing chat message into a structured bullet edit.
Styles: short (shorten), quant (add metrics), lead (emphasize leadership),
ats (keyword-optimize for applicant tracking systems), dejargon (remove government jargon).
Jobs and bullets are numbered from 1 in the listing, but return 0-based jobIndex and bulletIndices.
Use an empty targets array when the message applies to every bullet.
Set style to null and confidence to 0 when the message is not a bullet edit.
Return ONLY JSON matching the schema.
""".strip()

INTENT_USER_PROMPT = """
MESSAGE:
{message}

CURRENT BULLETS:
{listing}
""".strip()
