"""Template revisions: content-addressed snapshots, election and retention."""

from controlspine.revision.manager import NAME_LABEL, TEMPLATE_ANNOTATION, RevisionManager

__all__ = ["NAME_LABEL", "TEMPLATE_ANNOTATION", "RevisionManager"]
