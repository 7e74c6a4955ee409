"""
Property-based tests for merge trigger matching.
"""

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from shipit.trigger import COMMENT, DESCRIPTION, TriggerPolicy, find_trigger, matches, text_matches
from shipit.types.pulls import Comment, PullRequestCandidate
from shipit.testing import create_mock_summary

SHIPIT = re.compile(r"^:shipit:$")

# Lines that never contain the trigger
noise_line_strategy = st.text(
    alphabet=st.characters(whitelist_categories=("Lu", "Ll", "Nd", "Zs"), whitelist_characters=".,!?"),
    max_size=40,
)
padding_strategy = st.text(alphabet=" \t", max_size=5)


def _candidate(description: str = "", comments: tuple[Comment, ...] = ()) -> PullRequestCandidate:
    return PullRequestCandidate(
        summary=create_mock_summary(pr_id=1),
        description=description,
        comments=comments,
    )


def test_trigger_on_its_own_line_matches() -> None:
    assert text_matches("LGTM\n:shipit:\n", SHIPIT)


def test_trigger_inside_a_sentence_does_not_match() -> None:
    assert not text_matches("please :shipit: now", SHIPIT)


def test_surrounding_whitespace_is_ignored() -> None:
    assert text_matches("  :shipit:  ", SHIPIT)


def test_empty_text_does_not_match() -> None:
    assert not text_matches("", SHIPIT)


def test_unanchored_pattern_still_matches_whole_lines() -> None:
    assert not text_matches("ship it please", re.compile(r"ship it"))
    assert text_matches("ship it", re.compile(r"ship it"))


@given(
    before=st.lists(noise_line_strategy, max_size=5),
    after=st.lists(noise_line_strategy, max_size=5),
    left=padding_strategy,
    right=padding_strategy,
)
@settings(max_examples=100)
def test_property_trigger_line_anywhere_matches(
    before: list[str], after: list[str], left: str, right: str
) -> None:
    """
    Property: a line consisting of the trigger, plus whitespace, always matches
    regardless of the lines around it.
    """
    text = "\n".join([*before, f"{left}:shipit:{right}", *after])

    assert text_matches(text, SHIPIT)


@given(
    lines=st.lists(noise_line_strategy, max_size=8),
    prefix=st.text(alphabet="abc xyz", min_size=1, max_size=5),
)
@settings(max_examples=100)
def test_property_trigger_sharing_a_line_never_matches(lines: list[str], prefix: str) -> None:
    """
    Property: the trigger embedded in other text on the same line never matches.
    """
    text = "\n".join([*lines, f"{prefix.strip() or 'x'} :shipit:"])

    assert not text_matches(text, SHIPIT)


def test_matches_short_circuits_on_first_match() -> None:
    scanned = []

    def corpus():
        for text in ("nothing here", ":shipit:", "never reached"):
            scanned.append(text)
            yield text

    assert matches(corpus(), SHIPIT)
    assert scanned == ["nothing here", ":shipit:"]


def test_description_checked_before_comments() -> None:
    policy = TriggerPolicy(pattern=SHIPIT, check_description=True, check_comments=True)
    candidate = _candidate(":shipit:", (Comment(author="alice", text=":shipit:"),))

    assert find_trigger(candidate, policy, "alice") == DESCRIPTION


def test_only_own_comments_count() -> None:
    policy = TriggerPolicy(pattern=SHIPIT, check_description=False, check_comments=True)

    foreign = _candidate(comments=(Comment(author="mallory", text=":shipit:"),))
    own = _candidate(comments=(Comment(author="Alice", text=":shipit:"),))

    assert find_trigger(foreign, policy, "alice") is None
    assert find_trigger(own, policy, "alice") == COMMENT


def test_disabled_corpora_are_ignored() -> None:
    candidate = _candidate(":shipit:", (Comment(author="alice", text=":shipit:"),))

    description_off = TriggerPolicy(pattern=SHIPIT, check_description=False, check_comments=False)
    assert find_trigger(candidate, description_off, "alice") is None

    comments_only = TriggerPolicy(pattern=SHIPIT, check_description=False, check_comments=True)
    assert find_trigger(candidate, comments_only, "alice") == COMMENT
