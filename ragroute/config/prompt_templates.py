"""
ragroute - Prompt Templates & Routing Keywords
================================================
Centralised prompt management for the retrieval orchestration layer.
All prompts live here so they can be versioned, reviewed, and tuned
independently of application logic.

Exports
-------
SYSTEM_PROMPT, EVIDENCE_BLOCK_TEMPLATE, PASSAGE_TEMPLATE,
HISTORY_BLOCK_TEMPLATE, TOPIC_GATE_PROMPT, SOURCE_SELECTION_PROMPT,
SOURCE_OPTION_TEMPLATE, HISTORY_HINT_TEMPLATE, GENERATION_FAILED_RESPONSE,
INCLUDE_KEYWORDS, EXCLUDE_KEYWORDS, UNSURE_KEYWORDS, NONE_KEYWORDS.
"""

# ══════════════════════════════════════════════════════════════════════
#  SYSTEM PROMPT
# ══════════════════════════════════════════════════════════════════════

SYSTEM_PROMPT: str = """You are a helpful assistant answering questions about the user's documents.

• When an "Information" section is provided, ground your answer in it and
  mention the source of every fact you use.
• When no information is provided, answer from general knowledge and the
  conversation so far, and say so if you are unsure.
• Never invent citations.
• Answer in the language of the question."""


# ══════════════════════════════════════════════════════════════════════
#  EVIDENCE BLOCK
# ══════════════════════════════════════════════════════════════════════
# Injected only when at least one passage was retrieved.

EVIDENCE_BLOCK_TEMPLATE: str = """Information:
{passages}"""

PASSAGE_TEMPLATE: str = "[{rank}] ({source} | score {score:.2f})\n{text}"


# ══════════════════════════════════════════════════════════════════════
#  CONVERSATION HISTORY
# ══════════════════════════════════════════════════════════════════════

HISTORY_BLOCK_TEMPLATE: str = """Conversation so far:
{turns}"""


# ══════════════════════════════════════════════════════════════════════
#  ROUTING: LLM CLASSIFICATION PROMPTS
# ══════════════════════════════════════════════════════════════════════

# Single candidate source: yes / no / maybe gate.
TOPIC_GATE_PROMPT: str = """{history_hint}Is the query '{query}' about the following subject: {description}?
Answer only with 'yes', 'no' or 'maybe'."""

# Several candidate sources: pick by number or name.
SOURCE_SELECTION_PROMPT: str = """{history_hint}Based on the user query, determine the most suitable data source(s) to retrieve relevant information from the following options:
{options}
It is very important that your answer consists of either a single number or multiple numbers separated by commas and nothing else!
If none of the sources is relevant, answer 'none'.
User query: {query}"""

SOURCE_OPTION_TEMPLATE: str = "{number}: {name} - {description}"

HISTORY_HINT_TEMPLATE: str = """Recent conversation:
{turns}

"""


# ══════════════════════════════════════════════════════════════════════
#  ROUTING: FORGIVING ANSWER KEYWORDS
# ══════════════════════════════════════════════════════════════════════
# Matched case-insensitively on word boundaries anywhere in the model's
# answer, so "Yes, it is." and "I'd say: no" both parse.

INCLUDE_KEYWORDS: tuple[str, ...] = ("yes", "oui")
EXCLUDE_KEYWORDS: tuple[str, ...] = ("no", "non")
UNSURE_KEYWORDS: tuple[str, ...] = ("maybe", "perhaps", "peut-être", "peut-etre", "possibly")
NONE_KEYWORDS: tuple[str, ...] = ("none", "aucune", "aucun", "nothing")


# ══════════════════════════════════════════════════════════════════════
#  GENERATION FALLBACK
# ══════════════════════════════════════════════════════════════════════

GENERATION_FAILED_RESPONSE: str = "Sorry, I could not produce an answer right now. Please try again."
