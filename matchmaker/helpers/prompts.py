import json
from typing import List

from matchmaker.models.ai_settings import MatchingRules
from matchmaker.models.models import Profile, Project

MATCHMAKER_PROMPT = """
SYSTEM:
You are "JumysAL Matchmaker AI".
Your job: create the best possible pairs between PEOPLE profiles and PROJECTS, similar to how a recruiter matches candidates to jobs.
Output pure JSON only, no explanations.

RULES:
1. Only propose matches where BOTH sides benefit (skills vs skillsNeeded, interests overlap, language/remote compatibility).
2. Score every proposed match from 0 to 1 (higher = better).
3. Max {max_suggestions} project suggestions per person; skip if score < {min_score}.
4. Reasons must be concise (≤ {reason_max_chars} chars).

FORMAT:
[
  {{ "fromUid":"<profile uid>",
    "toProjectId":"<project id>",
    "score":0.82,
    "reason":"Knows Flutter & wants EdTech remote project" }},
  ...
]

DATA:
## PEOPLE
{people}

## PROJECTS
{projects}
"""


def build_prompt(profiles: List[Profile], projects: List[Project], rules: MatchingRules = None) -> str:
    rules = rules or MatchingRules()
    return MATCHMAKER_PROMPT.format(
        max_suggestions=rules.max_suggestions,
        min_score=rules.min_score,
        reason_max_chars=rules.reason_max_chars,
        people=json.dumps([p.dict() for p in profiles], ensure_ascii=False),
        projects=json.dumps([p.dict() for p in projects], ensure_ascii=False),
    )
