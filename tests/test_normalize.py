"""Tests for title/assignee normalization."""

import pytest

from task_completion.normalize import (
    build_assignee_key,
    candidate_key,
    is_placeholder_title,
    is_valid_title,
    normalize_group_id,
    normalize_title_key,
    to_token_set,
)


class TestAssigneeKey:
    def test_email_wins_over_name(self):
        assert build_assignee_key("Alice Smith", " Alice@X.com ") == "email:alice@x.com"

    def test_name_is_folded(self):
        assert build_assignee_key("  Alice  O'Neil ", None) == "name:alice o neil"

    @pytest.mark.parametrize("label", ["Unassigned", "unknown", "None", "TBD", "N/A", "n-a", "un-assigned"])
    def test_sentinel_labels_are_unassigned(self, label):
        assert build_assignee_key(label, None) == ""
        assert build_assignee_key(label, None, allow_unassigned=True) == "unassigned"

    def test_key_is_pure_function_of_inputs(self):
        pairs = [("Alice", None), (None, "bob@x.com"), ("TBD", ""), ("Carol", "CAROL@x.com")]
        first = [build_assignee_key(name, email, True) for name, email in pairs]
        second = [build_assignee_key(name, email, True) for name, email in reversed(pairs)]
        assert first == list(reversed(second))
        assert first == [build_assignee_key(name, email, True) for name, email in pairs]


class TestTitles:
    def test_normalize_title_key(self):
        assert normalize_title_key("  Send the Contract -- to ACME! ") == "send the contract to acme"
        assert normalize_title_key(None) == ""

    @pytest.mark.parametrize("title", ["", "   ", "Task", "action items", "Task #3", "todo 12", "A", "42", "1."])
    def test_invalid_titles(self, title):
        assert not is_valid_title(title)

    def test_placeholder_detection(self):
        assert is_placeholder_title("Next step 2")
        assert not is_placeholder_title("Send contract to Acme")

    def test_valid_title(self):
        assert is_valid_title("Send contract to Acme")

    def test_candidate_key_combines_title_and_assignee(self):
        assert candidate_key("Send Contract!", "email:a@x.com") == "send contract|email:a@x.com"


def test_token_set_drops_stopwords():
    assert to_token_set("I sent the contract to Acme") == {"sent", "contract", "acme"}


def test_normalize_group_id_aliases():
    assert normalize_group_id(" Cand_3 ") == "cand_3"
    assert normalize_group_id("cand-3") == "cand3"
