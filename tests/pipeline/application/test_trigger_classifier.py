"""
Tests for the trigger classifier.

Covers the full trigger/action table, rejections and input parsing.
"""

import pytest

from envgate.pipeline.application.trigger_classifier import (
    classify,
    normalize_branch,
    parse_request,
)
from envgate.pipeline.domain.enums import Action, Stage, TriggerKind
from envgate.pipeline.domain.models import TriggerRequest
from envgate.shared.domain.exceptions import ClassificationError, ConfigurationError

V, P, S, A, D = Stage.VALIDATE, Stage.PLAN, Stage.SCAN, Stage.APPLY, Stage.DESTROY
PRIMARY = "main"


class TestClassificationTable:
    """Every listed combination maps to exactly its stage list."""

    @pytest.mark.parametrize(
        "kind,branch,action,expected",
        [
            (TriggerKind.PUSH, "main", None, (V, P, S, A)),
            (TriggerKind.PUSH, "feature/vpc", None, (V, P, S)),
            (TriggerKind.PUSH, "hotfix-1", None, (V, P, S)),
            (TriggerKind.REVIEW, "main", None, (V, P, S)),
            (TriggerKind.MANUAL, "main", Action.VALIDATE, (V,)),
            (TriggerKind.MANUAL, "main", Action.PLAN, (V, P, S)),
            (TriggerKind.MANUAL, "main", Action.APPLY, (V, P, S, A)),
            (TriggerKind.MANUAL, "main", Action.DESTROY, (V, P, S, D)),
            (TriggerKind.MANUAL, "feature/x", Action.PLAN, (V, P, S)),
        ],
    )
    def test_table(self, kind, branch, action, expected):
        request = TriggerRequest(kind=kind, branch=branch, action=action)
        assert classify(request, PRIMARY) == expected

    def test_primary_branch_is_configurable(self):
        request = TriggerRequest(kind=TriggerKind.PUSH, branch="trunk")
        assert classify(request, "trunk") == (V, P, S, A)
        assert classify(request, "main") == (V, P, S)


class TestRejections:
    """Unlisted combinations are rejected as configuration errors."""

    def test_manual_without_action(self):
        with pytest.raises(ClassificationError, match="require an action"):
            classify(TriggerRequest(kind=TriggerKind.MANUAL, branch="main"), PRIMARY)

    def test_review_against_other_branch(self):
        with pytest.raises(ClassificationError):
            classify(TriggerRequest(kind=TriggerKind.REVIEW, branch="develop"), PRIMARY)

    @pytest.mark.parametrize("kind", [TriggerKind.PUSH, TriggerKind.REVIEW])
    @pytest.mark.parametrize("action", list(Action))
    def test_automatic_triggers_reject_actions(self, kind, action):
        request = TriggerRequest(kind=kind, branch="main", action=action)
        with pytest.raises(ClassificationError, match="only accepted on manual runs"):
            classify(request, PRIMARY)

    def test_classification_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            classify(TriggerRequest(kind=TriggerKind.MANUAL, branch="main"), PRIMARY)


class TestDestroyReachability:
    """Destroy only ever comes from manual + destroy."""

    def test_destroy_only_from_manual_destroy(self):
        reachable = []
        for kind in TriggerKind:
            for action in [None, *Action]:
                for branch in ("main", "feature/x"):
                    request = TriggerRequest(kind=kind, branch=branch, action=action)
                    try:
                        stages = classify(request, PRIMARY)
                    except ClassificationError:
                        continue
                    if D in stages:
                        reachable.append((kind, action))

        assert set(reachable) == {(TriggerKind.MANUAL, Action.DESTROY)}

    def test_destroy_requested_by_automatic_trigger_is_rejected(self):
        for kind in (TriggerKind.PUSH, TriggerKind.REVIEW):
            with pytest.raises(ClassificationError):
                classify(TriggerRequest(kind=kind, branch="main", action=Action.DESTROY), PRIMARY)

    def test_apply_and_destroy_never_together(self):
        for action in Action:
            stages = classify(TriggerRequest(kind=TriggerKind.MANUAL, branch="main", action=action), PRIMARY)
            assert not (A in stages and D in stages)


class TestParsing:
    """Raw CLI/CI strings become TriggerRequests."""

    @pytest.mark.parametrize(
        "raw,kind",
        [
            ("push", TriggerKind.PUSH),
            ("review", TriggerKind.REVIEW),
            ("pull_request", TriggerKind.REVIEW),
            ("manual", TriggerKind.MANUAL),
            ("workflow_dispatch", TriggerKind.MANUAL),
            (" PUSH ", TriggerKind.PUSH),
        ],
    )
    def test_trigger_aliases(self, raw, kind):
        assert parse_request(raw, "main").kind == kind

    def test_action_parsed(self):
        request = parse_request("manual", "main", "Destroy")
        assert request.action == Action.DESTROY

    def test_unknown_trigger(self):
        with pytest.raises(ClassificationError, match="Invalid trigger"):
            parse_request("schedule", "main")

    def test_unknown_action(self):
        with pytest.raises(ClassificationError, match="Invalid action"):
            parse_request("manual", "main", "import")

    def test_branch_ref_prefix_stripped(self):
        assert normalize_branch("refs/heads/main") == "main"
        request = parse_request("push", "refs/heads/main")
        assert classify(request, PRIMARY) == (V, P, S, A)

    @pytest.mark.parametrize("branch", ["", "   ", "bad branch", "a..b", "x" * 300, "main;rm -rf"])
    def test_invalid_branches(self, branch):
        with pytest.raises(ClassificationError):
            normalize_branch(branch)
