"""Prompt construction for decision analysis.

Each prompt schema revision has its own version tag. The tag is stored on
every record as ``modelInfo.promptVersion`` so older and newer record shapes
can be told apart when they are read back.
"""

from __future__ import annotations

PROMPT_VERSION_V1 = "v1.0"
PROMPT_VERSION_V2 = "v2.0"
PROMPT_VERSION = PROMPT_VERSION_V2
SUPPORTED_PROMPT_VERSIONS = (PROMPT_VERSION_V1, PROMPT_VERSION_V2)

DEFAULT_LOCALE = "en"

_PREAMBLE = """You are Afkari, a privacy-first AI decision coach.

TASK:
Analyze the user's problem and output ONLY valid minified JSON (no markdown, no explanations).
Language: Respond in {locale}. Keep it clear and concise."""

_SCHEMA_V1 = """SCHEMA:
{
  "goal": "string",
  "constraints": ["string", ...],
  "criteria": ["string", ...],
  "options": [
    { "title": "string", "rationale": "string", "risks": ["string", ...] }
  ],
  "clarifyingQuestions": ["string", ...],
  "actionPlan": [
    { "id": "string", "text": "string", "done": false, "dueDate": null }
  ]
}"""

_RULES_V1 = """RULES:
- Provide 3-6 distinct options.
- Provide 5-8 concrete action steps.
- Keep steps atomic and actionable (verb-first).
- Do not include any text outside the JSON.
- Do not wrap the JSON in markdown code fences.
- Avoid personal data. Assume anonymous input.
- If the input is unclear, infer reasonable defaults and include clarifyingQuestions."""

_SCHEMA_V2 = """SCHEMA:
{
  "goal": "string",
  "constraints": ["string", ...],
  "criteria": ["string", ...],
  "options": [
    {
      "title": "string",
      "rationale": "string",
      "risks": ["string", ...],
      "score": 0,
      "scoreExplanation": "string"
    }
  ],
  "recommendation": {
    "bestOptionTitle": "string",
    "bestOptionIndex": 0,
    "confidence": 0,
    "reason": "string",
    "summary": "string"
  }
}"""

_RULES_V2 = """RULES:
- Provide 3-6 distinct options.
- Score every option from 0 to 100 against the criteria; scores do not need to sum to 100.
- Explain each score in one or two sentences in scoreExplanation.
- bestOptionIndex is the zero-based position of the recommended option in "options".
- bestOptionTitle must equal the title of that option.
- confidence is a number from 0 to 100.
- Do not include any text outside the JSON.
- Do not wrap the JSON in markdown code fences.
- Avoid personal data. Assume anonymous input.
- If the input is unclear, infer reasonable defaults and say so in the recommendation reason."""

_SECTIONS = {
    PROMPT_VERSION_V1: (_SCHEMA_V1, _RULES_V1),
    PROMPT_VERSION_V2: (_SCHEMA_V2, _RULES_V2),
}


def build_prompt(
    problem_text: str,
    locale: str | None = DEFAULT_LOCALE,
    *,
    version: str = PROMPT_VERSION,
) -> str:
    """Build the model instruction for one problem.

    The result depends only on the arguments. ``problem_text`` is trimmed and
    embedded verbatim between triple quotes; callers are expected to reject
    empty text before getting here.

    Raises:
        ValueError: If ``version`` is not a supported prompt version.
    """
    try:
        schema, rules = _SECTIONS[version]
    except KeyError as exc:
        raise ValueError(f"Unsupported prompt version: {version}") from exc

    preamble = _PREAMBLE.format(locale=locale or DEFAULT_LOCALE)
    return "\n".join(
        [
            "",
            preamble,
            "",
            schema,
            "",
            rules,
            "",
            "USER_PROBLEM:",
            f'"""{problem_text.strip()}"""',
            "",
        ]
    )
