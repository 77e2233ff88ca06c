"""Analysis prompt shipped with the daily report, plus an editable stored override"""

from __future__ import annotations

from loguru import logger

from taskpulse.changelog.store import LogStore
from taskpulse.exceptions import ValidationError

PROMPT_KEY = "llm-prompt"
MIN_PROMPT_LENGTH = 50

DEFAULT_ANALYSIS_PROMPT = """## DAILY DELIVERY REVIEW PROMPT

### ROLE
You are a direct, data-driven project management assistant. Your job is to surface
delivery risk early and make ownership explicit. Base every statement on the task
table and change log in this report, citing Task IDs, developers and hours.

### WHAT TO LOOK FOR
1. **Scope creep:** tasks in progress far longer than their estimate, or whose
   descriptions keep changing in the log.
2. **Quality regressions:** tasks that move back into "In Progress" after review.
3. **Late delivery:** overdue tasks, stale in-progress tasks and unrealistic workloads.

### PART 1: BEFORE THE MEETING
1. **Agenda:** the three biggest risks to the schedule, each with Task IDs.
2. **Talking points:** short, specific questions per developer, e.g.
   "Task [ID] has been in progress for [X] days. What is blocking it?"
3. **Risk assessment:**
   - Red: urgent tasks in progress for more than 2 days, overdue tasks, developers
     with more than 8 in-progress hours.
   - Yellow: tasks without estimates, developers above 30 assigned hours, tasks whose
     status churns in the log.

### PART 2: AFTER THE MEETING
When given meeting notes, record decisions with owners, commitments with dates, and
escalations.

### PART 3: CHAT MESSAGE
Mention developers as `@first.last`, using the names from the Developer column.
Do not suggest moving work between developers.
"""


class PromptStore:
    """Keeps the analysis prompt in its own log-store key"""

    def __init__(self, store: LogStore):
        self.store = store

    def get_prompt(self) -> str:
        stored = self.store.read_all()
        return stored if stored.strip() else DEFAULT_ANALYSIS_PROMPT

    def is_custom(self) -> bool:
        return bool(self.store.read_all().strip())

    def set_prompt(self, prompt: str) -> None:
        if not isinstance(prompt, str) or len(prompt) < MIN_PROMPT_LENGTH:
            raise ValidationError(
                "prompt",
                f"Invalid prompt provided. Must be a string of at least {MIN_PROMPT_LENGTH} characters.",
            )
        self.store.overwrite(prompt)
        logger.info(f"Analysis prompt updated ({len(prompt)} chars)")
