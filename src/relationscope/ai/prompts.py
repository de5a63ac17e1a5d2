"""Prompt templates for transcript analysis.

This module is the SINGLE SOURCE of the prompts sent to Gemini. Each analysis
mode has its own template; the anonymization choice is substituted into the
system instruction at render time.

Example:
    >>> from relationscope.ai.prompts import get_analysis_prompt
    >>> template = get_analysis_prompt("deep")
    >>> system, user = template.render(anonymize=True, transcript=chat_text)
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from string import Template
from typing import Any

from relationscope.core.models import AnalysisMode

# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class PromptTemplate:
    """Metadata and content for a prompt template.

    Attributes:
        id: Unique identifier (e.g., "relationship_deep_v1").
        mode: Analysis mode this template implements.
        version: Version string for tracking changes.
        system_instruction: Role and behavior instructions with $placeholders.
        user_prompt_template: User prompt with $placeholders.
        required_variables: Variables that MUST be provided to render().
        description: Human-readable description of the prompt's purpose.
    """

    id: str
    mode: AnalysisMode
    version: str
    system_instruction: str
    user_prompt_template: str
    required_variables: set[str] = field(default_factory=set)
    description: str = ""

    def render(self, anonymize: bool, **variables: Any) -> tuple[str, str]:
        """Render the template.

        Args:
            anonymize: Whether names must be replaced by "Person A"/"Person B".
            **variables: Substitutions for the user prompt (``transcript``).

        Returns:
            Tuple of (system_instruction, rendered_user_prompt).

        Raises:
            ValueError: If required variables are missing.
        """
        missing = sorted(self.required_variables - set(variables))
        if missing:
            raise ValueError(f"Missing required variables for prompt '{self.id}': {missing}")

        system = Template(self.system_instruction).substitute(
            mode=self.mode.value,
            name_instruction=ANONYMIZE_INSTRUCTION if anonymize else NAMED_INSTRUCTION,
        )
        # safe_substitute: transcripts routinely contain "$"
        user = Template(self.user_prompt_template).safe_substitute(variables)
        return system, user


# =============================================================================
# System Instruction Building Blocks
# =============================================================================

ANONYMIZE_INSTRUCTION = (
    "You MUST anonymize the names of the two individuals and refer to them "
    'consistently as "Person A" and "Person B".'
)

NAMED_INSTRUCTION = (
    "Infer the names of the two individuals from the conversation and use them consistently."
)

ANALYST_HEADER = textwrap.dedent(
    """
    You are a world-class relationship analyst performing a **$mode analysis**.
    Your tone is empathetic and precise: a clinical yet nonjudgmental observer.
    Analyze the chat transcript you are given and produce a structured
    diagnostic report as JSON that adheres exactly to the provided schema.

    $name_instruction
    """
).strip()

ANALYSIS_RULES = textwrap.dedent(
    """
    === RULES ===
    - Every metric MUST include a value, an insight into why it matters, and
      1-3 direct evidence quotes of 25 words or fewer each.
    - Use emojis in the report where appropriate (❤️ 🔒 😔 🚩 ✅).
    - If signs of abuse are detected, set safetyWarning.isTriggered to true and
      list concrete support resources.
    - Provide raw numbers for the time-of-day distribution and reciprocity.
    - Timeline events and phases must be chronological. Dates use YYYY-MM-DD;
      infer approximate dates when they are not explicit.

    OUTPUT FORMAT: a single valid JSON object that follows the schema. Do not
    wrap it in markdown code fences.
    """
).strip()

QUICK_PARAMETERS = textwrap.dedent(
    """
    === CORE ANALYSIS PARAMETERS ===
    **Quick Mode:** focus on high-level metrics.
    1) General stats: total messages and reciprocity ratio.
    2) Metrics & meters: percentages for Working Probability, Trust, Love and
       Compatibility.
    3) Flags: up to 2 each of Green, Yellow and Red flags.
    4) TL;DR & verdict: a concise summary and a verdict with confidence.
    Other sections may be brief, but every required field must be present.
    """
).strip()

DEEP_PARAMETERS = textwrap.dedent(
    """
    === CORE ANALYSIS PARAMETERS ===
    **Deep Mode:** a comprehensive analysis of every parameter.
    1) General stats: total messages, initiations, reciprocity ratio, response
       speed, message volume by day and time of day, share of night texting,
       affection/support/apology/threat token counts, emoji frequency per
       person, pronoun counts ("I", "you", "we") and message size.
    2) Timeline / phases: a month-by-month table tagging phases (dating,
       honeymoon, conflict loops, repair...) with counts of ex, past, cheat,
       trust, jealousy, breakup and block mentions, and the
       affection-to-conflict ratio per period. These tables are mandatory.
    3) Personality & psychology: OCEAN scores (0-100) for each person with
       supporting evidence; hedging, avoidance and anticipatory language;
       direct vs indirect messaging; role flavor; self-labeling; boundary
       clarity; value-based ethics.
    4) Conflict & repair: repair attempts, who escalates and who de-escalates,
       threat language trends, looping unresolved topics, repair asymmetry.
    5) Metrics & meters: Working Probability, Trust, Love, Long-term,
       Compatibility and "Wife" meter percentages; affection vs support balance;
       sleep/focus risk from late-night texting; reciprocity health index;
       volume addiction risk; affection-to-conflict trend.
    6) Relationship timeline visualization:
       - key events categorized as Positive (affection, support, gifts),
         Negative (arguments, threats, blocking), Neutral (mood swings, delays)
         or Stop (significant breaks in communication), each with a date, a
         description, your inference and a short evidence quote;
       - distinct phases ('Early Talking', 'Dating', 'Commitment', 'Strain',
         'Repair'...) with start and end dates, chronological and covering the
         whole history.
    """
).strip()

USER_PROMPT = "Here is the chat transcript to analyze:\n\n---\n\n$transcript"


# =============================================================================
# Prompt Templates
# =============================================================================

QUICK_ANALYSIS_PROMPT = PromptTemplate(
    id="relationship_quick_v1",
    mode=AnalysisMode.QUICK,
    version="1.0.0",
    description="High-level relationship metrics, flags, TL;DR and verdict.",
    system_instruction="\n\n".join([ANALYST_HEADER, QUICK_PARAMETERS, ANALYSIS_RULES]),
    user_prompt_template=USER_PROMPT,
    required_variables={"transcript"},
)

DEEP_ANALYSIS_PROMPT = PromptTemplate(
    id="relationship_deep_v1",
    mode=AnalysisMode.DEEP,
    version="1.0.0",
    description="Full relationship diagnostic including timeline tables and visual timeline.",
    system_instruction="\n\n".join([ANALYST_HEADER, DEEP_PARAMETERS, ANALYSIS_RULES]),
    user_prompt_template=USER_PROMPT,
    required_variables={"transcript"},
)


# =============================================================================
# Registry
# =============================================================================

PROMPT_REGISTRY: dict[str, PromptTemplate] = {}


def register_prompt(template: PromptTemplate) -> None:
    """Register a prompt template in the global registry.

    Raises:
        ValueError: If a prompt with the same ID is already registered.
    """
    if template.id in PROMPT_REGISTRY:
        raise ValueError(f"Prompt '{template.id}' is already registered")
    PROMPT_REGISTRY[template.id] = template


def get_prompt(prompt_id: str) -> PromptTemplate:
    if prompt_id not in PROMPT_REGISTRY:
        available = ", ".join(sorted(PROMPT_REGISTRY))
        raise KeyError(f"Prompt '{prompt_id}' not found. Available prompts: {available}")
    return PROMPT_REGISTRY[prompt_id]


def version_key(version: str) -> tuple[int, ...]:
    """Sortable key for a dotted version string; non-numeric parts count as 0."""
    return tuple(int(part) if part.isdigit() else 0 for part in version.split("."))


def get_analysis_prompt(mode: AnalysisMode | str) -> PromptTemplate:
    """Return the latest template for an analysis mode."""
    mode = AnalysisMode(mode)
    candidates = [t for t in PROMPT_REGISTRY.values() if t.mode == mode]
    if not candidates:
        raise KeyError(f"No prompt registered for mode '{mode.value}'")
    return max(candidates, key=lambda t: version_key(t.version))


for _template in (QUICK_ANALYSIS_PROMPT, DEEP_ANALYSIS_PROMPT):
    register_prompt(_template)
