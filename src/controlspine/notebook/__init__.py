"""Notebook controller."""

from controlspine.notebook.reconciler import NOTEBOOK_NAME_LABEL, OWNER_ANNOTATION, NotebookReconciler

__all__ = ["NOTEBOOK_NAME_LABEL", "OWNER_ANNOTATION", "NotebookReconciler"]
