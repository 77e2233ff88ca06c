"""Unit tests for the stored analysis prompt."""

import pytest

from taskpulse.changelog.store import FileLogStore
from taskpulse.exceptions import ValidationError
from taskpulse.reporting.prompts import DEFAULT_ANALYSIS_PROMPT, MIN_PROMPT_LENGTH, PromptStore


@pytest.fixture
def prompts(tmp_path):
    return PromptStore(FileLogStore(tmp_path, "llm-prompt"))


class TestPromptStore:
    """Test cases for PromptStore."""

    def test_default_until_set(self, prompts):
        assert prompts.get_prompt() == DEFAULT_ANALYSIS_PROMPT
        assert prompts.is_custom() is False

    def test_set_prompt(self, prompts):
        prompt = "p" * MIN_PROMPT_LENGTH

        prompts.set_prompt(prompt)

        assert prompts.get_prompt() == prompt
        assert prompts.is_custom() is True

    @pytest.mark.parametrize("prompt", ["too short", None, 42])
    def test_rejects_invalid_prompt(self, prompts, prompt):
        with pytest.raises(ValidationError) as excinfo:
            prompts.set_prompt(prompt)

        assert excinfo.value.field == "prompt"
        assert prompts.is_custom() is False
