"""Tests for RevisionManager: snapshots, election and retention."""

from __future__ import annotations

import re

import pytest

from controlspine.core.errors import NotFoundError, OptionNotFoundError, OverlayError
from controlspine.core.hashing import canonical_json, compute_content_hash
from controlspine.core.protocols import Referrer
from controlspine.execution.tasks import NamespacedTask
from controlspine.resources import DagTask, OwnerReference, TemplateReference, UpdatePolicy
from controlspine.resources.meta import utcnow
from controlspine.revision import NAME_LABEL, TEMPLATE_ANNOTATION, RevisionManager


@pytest.fixture()
def manager(store):
    return RevisionManager(store)


def set_image(store, image, *, name="base", namespace="default"):
    template = store.get("Template", namespace, name)
    template.spec.template["spec"]["containers"][0]["image"] = image
    store.update(template)


def image_of(revision):
    return revision.pod_template()["spec"]["containers"][0]["image"]


# ── Referrers ────────────────────────────────────────────────────────────


class TestReferrers:
    def test_notebook_is_referrer(self, make_notebook):
        assert isinstance(make_notebook(), Referrer)

    def test_namespaced_task_is_referrer(self):
        task = NamespacedTask(DagTask(name="t1", template_ref=TemplateReference(name="base")), "ml")
        assert isinstance(task, Referrer)
        assert task.template_ref().namespace == "ml"
        assert task.history_limit() == 1
        assert task.update_policy() is UpdatePolicy.IGNORE

    def test_notebook_unset_policy_is_ignore(self, make_notebook):
        assert make_notebook().update_policy() is UpdatePolicy.IGNORE

    def test_object_without_owner_is_not_referrer(self):
        class Partial:
            name = "x"
            namespace = "default"

            def template_ref(self): ...

            def history_limit(self): ...

            def resource_requests(self): ...

            def elected_options(self): ...

            def update_policy(self): ...

        assert not isinstance(Partial(), Referrer)

    def test_ownerless_task_revision_has_no_owner(self, manager, make_template):
        make_template()
        task = NamespacedTask(DagTask(name="t1", template_ref=TemplateReference(name="base")), "default")
        assert manager.create(task).metadata.owner_references == []



# ── Create ───────────────────────────────────────────────────────────────


class TestCreate:
    def test_name_is_referrer_plus_content_hash(self, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        revision = manager.create(nb)

        assert re.fullmatch(r"nb-[0-9a-f]{10}", revision.metadata.name)
        assert revision.metadata.name == f"nb-{compute_content_hash(revision.spec.data)}"
        assert revision.spec.data == canonical_json(revision.pod_template())

    def test_labels_annotation_and_owner(self, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        revision = manager.create(nb)

        assert revision.metadata.labels == {NAME_LABEL: "nb"}
        assert revision.metadata.annotations == {TEMPLATE_ANNOTATION: "default/base"}
        owner = revision.metadata.controller_ref()
        assert owner.kind == "Notebook"
        assert owner.uid == nb.metadata.uid

    def test_identical_content_is_deterministic(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        first = manager.create(nb)
        second = manager.create(nb)

        assert first.metadata.name == second.metadata.name
        assert len(store.list("Revision")) == 1

    def test_template_change_creates_new_revision(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        first = manager.create(nb)
        set_image(store, "busybox:2")
        second = manager.create(nb)

        assert first.metadata.name != second.metadata.name
        assert image_of(second) == "busybox:2"
        assert [r.metadata.name for r in manager.list(nb)] == [first.metadata.name, second.metadata.name]

    def test_overlay_order_required_then_elected_then_patches(self, store, make_template, make_pod_default, make_notebook):
        make_pod_default("req", {"spec": {"containers": [{"name": "main", "image": "required", "env": [{"name": "R", "value": "1"}]}]}})
        make_pod_default("opt", {"spec": {"containers": [{"name": "main", "image": "elected", "env": [{"name": "E", "value": "1"}]}]}})
        make_template(options=("opt",), required=("req",))
        nb = make_notebook("nb", options=("opt",))

        plain = RevisionManager(store).create(nb)
        assert image_of(plain) == "elected"
        assert [e["name"] for e in plain.pod_template()["spec"]["containers"][0]["env"]] == ["R", "E"]

        patched = RevisionManager(store, patches=[{"spec": {"containers": [{"name": "main", "image": "patched"}]}}]).create(nb)
        assert image_of(patched) == "patched"

    def test_resource_requests_applied(self, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", resources={"cpu": "2", "memory": "8Gi"})
        revision = manager.create(nb)
        requests = revision.pod_template()["spec"]["containers"][0]["resources"]["requests"]
        assert requests == {"cpu": "2", "memory": "8Gi"}

    def test_unknown_option_raises(self, manager, make_template, make_notebook):
        make_template(options=("gpu",))
        nb = make_notebook("nb", options=("tpu",))
        with pytest.raises(OptionNotFoundError) as exc_info:
            manager.create(nb)
        assert str(exc_info.value) == "the referenced option was not found in the template spec: tpu"
        assert exc_info.value.context.referrer == "nb"
        assert exc_info.value.context.position == 0

    def test_missing_fragment_raises(self, manager, make_template, make_notebook):
        make_template(required=("missing",))
        with pytest.raises(NotFoundError) as exc_info:
            manager.create(make_notebook("nb"))
        assert exc_info.value.context.option == "missing"

    def test_missing_template_raises(self, manager, make_notebook):
        with pytest.raises(NotFoundError):
            manager.create(make_notebook("nb", template="nope"))

    def test_malformed_fragment_raises_overlay_error(self, store, manager, make_template, make_pod_default, make_notebook):
        make_pod_default("broken", {"spec": "oops"})
        make_template(required=("broken",))
        with pytest.raises(OverlayError) as exc_info:
            manager.create(make_notebook("nb"))
        assert exc_info.value.context.option == "broken"
        assert store.list("Revision") == []

    def test_malformed_keyed_list_in_fragment_raises(self, manager, make_template, make_pod_default, make_notebook):
        make_pod_default("broken", {"spec": {"containers": "oops"}})
        make_template(options=("broken",))
        with pytest.raises(OverlayError):
            manager.create(make_notebook("nb", options=("broken",)))


    def test_revision_marked_ready(self, manager, make_template, make_notebook):
        make_template()
        assert manager.create(make_notebook("nb")).status.ready is True


# ── Dependencies ─────────────────────────────────────────────────────────


class TestDependencies:
    def test_dependencies_copied_into_referrer_namespace(self, store, manager, make_template, make_pod_default, make_object, make_notebook):
        system = "controlspine-system"
        make_object("Secret", "registry-creds", namespace=system, data={"token": "abc"})
        make_object("ConfigMap", "proxy", namespace=system, data={"url": "http://proxy"})
        make_pod_default("with-proxy", {"spec": {}}, namespace=system, dependencies=(("ConfigMap", "proxy"),))
        make_template(namespace=system, required=("with-proxy",), dependencies=(("Secret", "registry-creds"),))
        nb = make_notebook("nb", namespace="team-a", template_namespace=system)

        revision = manager.create(nb)

        original = store.get("Secret", system, "registry-creds")
        secret = store.get("Secret", "team-a", revision.metadata.name)
        config = store.get("ConfigMap", "team-a", revision.metadata.name)
        assert secret.body["data"] == {"token": "abc"}
        assert config.body["data"] == {"url": "http://proxy"}
        assert secret.metadata.uid != original.metadata.uid
        assert [ref.uid for ref in secret.metadata.owner_references] == [revision.metadata.uid]

    def test_repeated_create_tolerates_existing_copies(self, store, manager, make_template, make_object, make_notebook):
        make_object("Secret", "creds")
        make_template(dependencies=(("Secret", "creds"),))
        nb = make_notebook("nb")
        manager.create(nb)
        manager.create(nb)
        assert len(store.list("Secret")) == 2

    def test_missing_dependency_raises(self, manager, make_template, make_notebook):
        make_template(dependencies=(("Secret", "absent"),))
        with pytest.raises(NotFoundError):
            manager.create(make_notebook("nb"))

    def test_copy_gets_fresh_identity(self, store, manager, make_template, make_object, make_notebook):
        source = make_object("Secret", "creds", data={"token": "abc"})
        source.metadata.finalizers = ["keep"]
        source.metadata.deletion_timestamp = utcnow()
        source.metadata.owner_references = [OwnerReference(api_version="v1", kind="ServiceAccount", name="sa", uid="sa-uid")]
        store.update(source)
        source = store.get("Secret", "default", "creds")
        make_template(dependencies=(("Secret", "creds"),))

        revision = manager.create(make_notebook("nb"))

        copied = store.get("Secret", "default", revision.metadata.name)
        assert copied.metadata.finalizers == []
        assert copied.metadata.deletion_timestamp is None
        assert [ref.uid for ref in copied.metadata.owner_references] == [revision.metadata.uid]
        assert copied.metadata.uid != source.metadata.uid
        assert copied.metadata.resource_version != source.metadata.resource_version
        assert copied.metadata.creation_timestamp > source.metadata.creation_timestamp
        assert copied.body["data"] == {"token": "abc"}
        assert source.metadata.finalizers == ["keep"]

    def test_same_kind_dependencies_keep_first_copy(self, store, manager, make_template, make_object, make_notebook):
        make_object("Secret", "a", data={"from": "a"})
        make_object("Secret", "b", data={"from": "b"})
        make_template(dependencies=(("Secret", "a"), ("Secret", "b")))

        revision = manager.create(make_notebook("nb"))

        copies = [s for s in store.list("Secret") if s.metadata.name == revision.metadata.name]
        assert len(copies) == 1
        assert copies[0].body["data"] == {"from": "a"}
        assert len(store.list("Secret")) == 3



# ── Election ─────────────────────────────────────────────────────────────


class TestElection:
    def test_elect_creates_and_elects_first_revision(self, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        elected = manager.elect_revision(nb)

        assert elected.elected
        assert manager.elected(nb).metadata.name == elected.metadata.name
        assert sum(r.elected for r in manager.list(nb)) == 1

    def test_ignore_policy_keeps_elected_revision(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", update_policy=UpdatePolicy.IGNORE)
        first = manager.elect_revision(nb)
        version = store.get("Revision", "default", first.metadata.name).metadata.resource_version

        again = manager.elect_revision(nb)

        assert again.metadata.name == first.metadata.name
        assert len(manager.list(nb)) == 1
        assert store.get("Revision", "default", first.metadata.name).metadata.resource_version == version

    def test_ignore_policy_does_not_follow_template(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        first = manager.elect_revision(nb)
        set_image(store, "busybox:2")

        assert manager.elect_revision(nb).metadata.name == first.metadata.name

    def test_auto_policy_follows_template(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", update_policy=UpdatePolicy.AUTO)
        first = manager.elect_revision(nb)
        set_image(store, "busybox:2")

        second = manager.elect_revision(nb)

        assert second.metadata.name != first.metadata.name
        assert image_of(second) == "busybox:2"
        assert not store.get("Revision", "default", first.metadata.name).elected
        assert [r.metadata.name for r in manager.list(nb) if r.elected] == [second.metadata.name]

    def test_election_recalls_stale_elected_revisions(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        first = manager.create(nb)
        set_image(store, "busybox:2")
        second = manager.create(nb)
        # simulate a crash between the recall and elect writes of an earlier pass
        for revision in (first, second):
            stored = store.get("Revision", "default", revision.metadata.name)
            stored.elect()
            store.update(stored)

        kept = manager.elect_revision(nb)

        assert [r.metadata.name for r in manager.list(nb) if r.elected] == [kept.metadata.name]

    def test_latest_and_elected_empty(self, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb")
        assert manager.latest(nb) is None
        assert manager.elected(nb) is None


# ── Trimming ─────────────────────────────────────────────────────────────


class TestTrim:
    def _revisions(self, store, manager, nb, images):
        names = []
        for image in images:
            set_image(store, image)
            names.append(manager.create(nb).metadata.name)
        return names

    def test_history_limit_keeps_newest(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", history_limit=2)
        names = self._revisions(store, manager, nb, ["a", "b", "c", "d"])
        assert [r.metadata.name for r in manager.list(nb)] == names[-2:]

    def test_elected_revision_never_trimmed(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", history_limit=1)
        elected = manager.elect_revision(nb)
        names = self._revisions(store, manager, nb, ["b", "c"])

        remaining = [r.metadata.name for r in manager.list(nb)]
        assert remaining == [elected.metadata.name, names[-1]]

    def test_zero_limit_keeps_newest(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", history_limit=0)
        names = self._revisions(store, manager, nb, ["a", "b"])
        assert [r.metadata.name for r in manager.list(nb)] == names[-1:]

    def test_trim_returns_deleted_names(self, store, manager, make_template, make_notebook):
        make_template()
        nb = make_notebook("nb", history_limit=3)
        names = self._revisions(store, manager, nb, ["a", "b", "c"])
        nb.spec.revision_history_limit = 1
        assert sorted(manager.trim_revisions(nb)) == sorted(names[:2])
