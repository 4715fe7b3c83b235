#!/usr/bin/env python3
"""
Unit tests for remote planning and application.
"""

import unittest
from unittest.mock import Mock, call

from gitensure.reconcile.gateway import ExecutionScope, GitCapabilities
from gitensure.reconcile.models import NamedSources, SingleSource
from gitensure.reconcile.remotes import (
    RemoteAction,
    RemoteOperation,
    RemotePlan,
    RemoteReconciler,
    plan_remotes,
    source_from_remotes,
)


class TestPlanRemotes(unittest.TestCase):

    def test_no_source_plans_nothing(self):
        plan = plan_remotes(None, "origin", {"origin": "https://example.com/a.git"})
        self.assertEqual(plan.operations, [])
        self.assertFalse(plan.recreate)

    def test_matching_single_remote_plans_nothing(self):
        plan = plan_remotes(SingleSource("A"), "origin", {"origin": "A"})
        self.assertEqual(plan.operations, [])
        self.assertFalse(plan.recreate)
        self.assertFalse(plan.changed)

    def test_single_remote_with_other_url_recreates(self):
        plan = plan_remotes(SingleSource("B"), "origin", {"origin": "A"})
        self.assertTrue(plan.recreate)
        self.assertEqual(plan.operations, [])

    def test_single_remote_with_other_name_recreates(self):
        plan = plan_remotes(SingleSource("A"), "origin", {"upstream": "A"})
        self.assertTrue(plan.recreate)

    def test_extra_remote_removed_for_named_sources(self):
        plan = plan_remotes(NamedSources({"origin": "X"}), "origin", {"origin": "X", "upstream": "Y"})
        self.assertEqual(plan.operations, [RemoteOperation(RemoteAction.REMOVE, "upstream")])
        self.assertFalse(plan.changed)
        self.assertEqual(plan.removals(), ["upstream"])

    def test_extra_remotes_removed_for_single_source(self):
        plan = plan_remotes(SingleSource("X"), "origin", {"origin": "X", "upstream": "Y"})
        self.assertEqual(plan.operations, [RemoteOperation(RemoteAction.REMOVE, "upstream")])

    def test_named_sources_add_and_update(self):
        plan = plan_remotes(
            NamedSources({"origin": "X2", "upstream": "Y"}),
            "origin",
            {"origin": "X"},
        )
        self.assertEqual(plan.operations, [
            RemoteOperation(RemoteAction.UPDATE, "origin", "X2"),
            RemoteOperation(RemoteAction.ADD, "upstream", "Y"),
        ])
        self.assertTrue(plan.changed)
        self.assertFalse(plan.recreate)

    def test_named_sources_without_actual_remotes_adds_all(self):
        plan = plan_remotes(NamedSources({"b": "B", "a": "A"}), "a", {})
        self.assertEqual([op.name for op in plan.operations], ["a", "b"])
        self.assertTrue(all(op.action == RemoteAction.ADD for op in plan.operations))


class TestSourceFromRemotes(unittest.TestCase):

    def test_one_remote_reads_as_single_source(self):
        self.assertEqual(source_from_remotes({"origin": "A"}), SingleSource("A"))

    def test_several_remotes_read_as_named_sources(self):
        self.assertEqual(
            source_from_remotes({"origin": "A", "upstream": "B"}),
            NamedSources({"origin": "A", "upstream": "B"})
        )


class TestRemoteReconciler(unittest.TestCase):

    def setUp(self):
        self.gateway = Mock()
        self.gateway.capabilities = GitCapabilities((2, 40, 0))
        self.scope = ExecutionScope.for_repository("/srv/repo")
        self.reconciler = RemoteReconciler(self.gateway, self.scope)

    def test_apply_refreshes_once_after_changes(self):
        plan = RemotePlan([
            RemoteOperation(RemoteAction.REMOVE, "stale"),
            RemoteOperation(RemoteAction.UPDATE, "origin", "X2"),
            RemoteOperation(RemoteAction.ADD, "upstream", "Y"),
        ])
        self.assertTrue(self.reconciler.apply(plan))
        self.assertEqual(self.gateway.run.call_args_list, [
            call(self.scope, "remote", "remove", "stale"),
            call(self.scope, "remote", "set-url", "origin", "X2"),
            call(self.scope, "remote", "add", "upstream", "Y"),
            call(self.scope, "remote", "update", network=True),
        ])

    def test_apply_removals_only_does_not_refresh(self):
        plan = RemotePlan([RemoteOperation(RemoteAction.REMOVE, "stale")])
        self.assertFalse(self.reconciler.apply(plan))
        self.gateway.run.assert_called_once_with(self.scope, "remote", "remove", "stale")

    def test_update_references_forces_tags_on_new_git(self):
        self.reconciler.update_references("origin")
        self.assertEqual(self.gateway.run.call_args_list, [
            call(self.scope, "fetch", "origin", network=True),
            call(self.scope, "fetch", "--tags", "--force", "origin", network=True),
        ])

    def test_update_references_without_forced_tags_on_old_git(self):
        self.gateway.capabilities = GitCapabilities((2, 19, 0))
        self.reconciler.update_references("origin")
        self.assertEqual(
            self.gateway.run.call_args_list[-1],
            call(self.scope, "fetch", "--tags", "origin", network=True)
        )


if __name__ == "__main__":
    unittest.main()
