"""
Revision lifecycle for referrers of a template.

``RevisionManager`` captures immutable, content-addressed snapshots of a
template as seen by one referrer, elects the snapshot the referrer should
run, and trims old snapshots.

Manifesto:
    - **Content addressed:** A revision's name is the referrer name plus a
      hash of the resolved pod template; identical content never produces a
      second object
    - **Idempotent:** Every operation may be repeated on every pass; an
      already-existing revision or dependency copy counts as success
    - **Self-healing election:** A crash between the recall and the elect
      write leaves two (or zero) elected revisions; the next election
      converges back to exactly one

Architecture:
    ::

        create(referrer)
          ├── Template (referrer.template_ref())
          ├── required fragments     ─┐
          ├── elected options        ─┤ merge_pod_template, in this order
          ├── resource requests      ─┤
          ├── caller patches         ─┘
          ├── canonical_json → hash → Revision "<referrer>-<hash>"
          ├── copy dependencies into the referrer namespace (owned by revision)
          └── trim_revisions(referrer)

Examples:
    >>> manager = RevisionManager(store)
    >>> revision = manager.elect_revision(notebook)
    >>> revision.elected
    True

Tags:
    revision, snapshot, election, retention, overlay
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from typing import Any

from controlspine.core.errors import AlreadyExistsError, NotFoundError, OptionNotFoundError, OverlayError
from controlspine.core.hashing import canonical_json, compute_content_hash
from controlspine.core.logging import get_logger
from controlspine.core.protocols import ObjectStore, Referrer
from controlspine.overlay import apply_resource_requests, merge_pod_template
from controlspine.resources.meta import GROUP_NAME, ObjectMeta, UpdatePolicy
from controlspine.resources.revision import Revision, RevisionSpec, sort_revisions
from controlspine.resources.template import ObjectReference, PodDefault, Template

NAME_LABEL = f"{GROUP_NAME}/name"
TEMPLATE_ANNOTATION = f"{GROUP_NAME}/template"


class RevisionManager:
    """Creates, elects and trims the revisions of a referrer."""

    def __init__(
        self,
        store: ObjectStore,
        *,
        logger: Any = None,
        patches: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self.store = store
        self.logger = logger or get_logger(__name__)
        self.patches = [copy.deepcopy(dict(p)) for p in patches]

    # -- queries ------------------------------------------------------------

    def list(self, referrer: Referrer) -> list[Revision]:
        """Revisions of ``referrer``, oldest first."""
        revisions = self.store.list("Revision", namespace=referrer.namespace, labels={NAME_LABEL: referrer.name})
        return sort_revisions(revisions)

    def latest(self, referrer: Referrer) -> Revision | None:
        revisions = self.list(referrer)
        return revisions[-1] if revisions else None

    def elected(self, referrer: Referrer) -> Revision | None:
        for revision in self.list(referrer):
            if revision.elected:
                return revision
        return None

    # -- create -------------------------------------------------------------

    def create(self, referrer: Referrer) -> Revision:
        """Snapshot the referrer's template, creating the revision if it is new."""
        log = self.logger.bind(referrer=referrer.name, namespace=referrer.namespace)
        key = referrer.template_ref()
        try:
            template: Template = self.store.get("Template", key.namespace, key.name)
        except NotFoundError as e:
            e.with_context(referrer=referrer.name)
            log.error("revision.template_missing", template=str(key), error=str(e))
            raise

        spec = template.pod_template()
        dependencies = list(template.spec.dependencies)

        for position, option in enumerate(template.spec.required):
            fragment = self._fragment(template, option, position, referrer, log)
            spec = self._merge(spec, fragment, position, referrer, log)
            dependencies.extend(fragment.spec.dependencies)

        catalog = template.option_names()
        for position, option in enumerate(referrer.elected_options()):
            if option not in catalog:
                error = OptionNotFoundError(option).with_context(referrer=referrer.name, position=position)
                log.error("revision.option_not_found", option=option, position=position, error=str(error))
                raise error
            fragment = self._fragment(template, option, position, referrer, log)
            spec = self._merge(spec, fragment, position, referrer, log)
            dependencies.extend(fragment.spec.dependencies)

        spec = apply_resource_requests(spec, referrer.resource_requests())
        for patch in self.patches:
            spec = merge_pod_template(spec, patch)

        data = canonical_json(spec)
        revision = Revision(
            metadata=ObjectMeta(
                name=f"{referrer.name}-{compute_content_hash(data)}",
                namespace=referrer.namespace,
                labels={NAME_LABEL: referrer.name},
                annotations={TEMPLATE_ANNOTATION: str(key)},
            ),
            spec=RevisionSpec(data=data),
        )
        owner = referrer.as_owner()
        if owner is not None:
            revision.metadata.owner_references.append(owner)

        try:
            self.store.create(revision)
            log.info("revision.created", revision=revision.metadata.name, template=str(key))
        except AlreadyExistsError:
            revision = self.store.get("Revision", referrer.namespace, revision.metadata.name)

        self._copy_dependencies(dependencies, template, revision, log)
        if not revision.status.ready:
            revision.status.ready = True
            self.store.update(revision)

        self.trim_revisions(referrer, keep=(revision.metadata.name,))
        return revision

    def _fragment(
        self,
        template: Template,
        option: str,
        position: int,
        referrer: Referrer,
        log: Any,
    ) -> PodDefault:
        # fragments resolve in the template's namespace, never the referrer's
        try:
            return self.store.get("PodDefault", template.metadata.namespace, option)
        except NotFoundError as e:
            e.with_context(referrer=referrer.name, option=option, position=position)
            log.error("revision.option_missing", option=option, position=position, error=str(e))
            raise

    def _merge(
        self,
        spec: dict[str, Any],
        fragment: PodDefault,
        position: int,
        referrer: Referrer,
        log: Any,
    ) -> dict[str, Any]:
        try:
            return merge_pod_template(spec, fragment.spec.template)
        except OverlayError as e:
            e.with_context(referrer=referrer.name, option=fragment.metadata.name, position=position)
            log.error("revision.merge_failed", option=fragment.metadata.name, position=position, error=str(e))
            raise

    def _copy_dependencies(
        self,
        dependencies: list[ObjectReference],
        template: Template,
        revision: Revision,
        log: Any,
    ) -> None:
        """Copy each dependency into the revision namespace, named after the revision."""
        copied_kinds: set[str] = set()
        for dependency in dependencies:
            if dependency.kind in copied_kinds:
                # copies are named after the revision; the first object of a kind wins
                log.error(
                    "revision.dependency_collision",
                    dependency=dependency.name,
                    dependency_kind=dependency.kind,
                    revision=revision.metadata.name,
                )
            copied_kinds.add(dependency.kind)

            try:
                obj = self.store.get(dependency.kind, template.metadata.namespace, dependency.name)
            except NotFoundError:
                log.error("revision.dependency_missing", dependency=dependency.name, dependency_kind=dependency.kind)
                raise

            obj.metadata.reset_identity()
            obj.metadata.name = revision.metadata.name
            obj.metadata.namespace = revision.metadata.namespace
            obj.metadata.owner_references = [revision.as_owner()]
            try:
                self.store.create(obj)
                log.debug("revision.dependency_copied", dependency=dependency.name, dependency_kind=dependency.kind)
            except AlreadyExistsError:
                continue

    # -- election -----------------------------------------------------------

    def elect_revision(self, referrer: Referrer) -> Revision:
        """Make exactly one revision of ``referrer`` the elected one and return it.

        With no elected revision, or under ``UpdatePolicy.AUTO``, the target is
        a fresh snapshot (Auto) or the latest existing revision (Ignore).
        Under Ignore an already-elected revision is kept as is.
        """
        elected = [r for r in self.list(referrer) if r.elected]

        if elected and referrer.update_policy() != UpdatePolicy.AUTO:
            current = elected[0]
            self._recall(elected[1:], referrer)
            return current

        if referrer.update_policy() == UpdatePolicy.AUTO:
            target = self.create(referrer)
        else:
            target = self.latest(referrer) or self.create(referrer)

        self._recall([r for r in elected if r.metadata.name != target.metadata.name], referrer)

        if not target.elected:
            original = copy.deepcopy(target)
            target.elect()
            self.store.patch(target, original)
            self.logger.info(
                "revision.elected",
                referrer=referrer.name,
                namespace=referrer.namespace,
                revision=target.metadata.name,
            )
        return target

    def _recall(self, revisions: list[Revision], referrer: Referrer) -> None:
        for revision in revisions:
            original = copy.deepcopy(revision)
            revision.recall()
            self.store.patch(revision, original)
            self.logger.info(
                "revision.recalled",
                referrer=referrer.name,
                namespace=referrer.namespace,
                revision=revision.metadata.name,
            )

    # -- retention ----------------------------------------------------------

    def trim_revisions(self, referrer: Referrer, *, keep: Iterable[str] = ()) -> list[str]:
        """Delete revisions beyond the history limit, newest kept first.

        Elected revisions are never deleted, so the limit may be exceeded
        by one. Names in ``keep`` are never deleted either. Returns the
        names of deleted revisions.
        """
        limit = max(referrer.history_limit(), 1)
        protected = set(keep)
        deleted: list[str] = []
        for index, revision in enumerate(reversed(self.list(referrer))):
            if index < limit or revision.elected or revision.metadata.name in protected:
                continue
            try:
                self.store.delete(revision)
            except NotFoundError:
                continue
            deleted.append(revision.metadata.name)
            self.logger.info(
                "revision.trimmed",
                referrer=referrer.name,
                namespace=referrer.namespace,
                revision=revision.metadata.name,
            )
        return deleted
