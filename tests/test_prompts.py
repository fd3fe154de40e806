import json

from matchmaker.helpers.prompts import build_prompt
from matchmaker.models.ai_settings import MatchingRules
from matchmaker.models.models import Profile, Project


def _data():
    people = [Profile(uid="u1", skills=["flutter"]), Profile(uid="u2", skills=["go"])]
    projects = [Project(projectId="p1", skillsNeeded=["flutter"])]
    return people, projects


class TestBuildPrompt:
    """Test cases for the matchmaking prompt"""

    def test_states_rules_and_format(self):
        people, projects = _data()

        prompt = build_prompt(people, projects)

        assert "Max 5 project suggestions per person" in prompt
        assert "skip if score < 0.35" in prompt
        assert "≤ 80 chars" in prompt
        for key in ('"fromUid"', '"toProjectId"', '"score"', '"reason"'):
            assert key in prompt

    def test_embeds_people_and_projects(self):
        people, projects = _data()

        prompt = build_prompt(people, projects)

        people_json = prompt.split("## PEOPLE")[1].split("## PROJECTS")[0].strip()
        projects_json = prompt.split("## PROJECTS")[1].strip()
        assert [p["uid"] for p in json.loads(people_json)] == ["u1", "u2"]
        assert json.loads(projects_json)[0]["projectId"] == "p1"

    def test_custom_rules(self):
        people, projects = _data()

        prompt = build_prompt(people, projects, MatchingRules(min_score=0.5, max_suggestions=3, reason_max_chars=60))

        assert "Max 3 project suggestions" in prompt
        assert "score < 0.5" in prompt
        assert "≤ 60 chars" in prompt

    def test_is_deterministic(self):
        people, projects = _data()

        assert build_prompt(people, projects) == build_prompt(people, projects)
