"""controlspine: control-plane primitives for DAG executions and template revisions.

Architecture::

    core/         errors, logging, settings, hashing, protocols
    resources/    resource models (Template, Dag, Execution, Revision, ...)
    overlay.py    strategic merge of pod templates
    store/        in-memory and SQLite object stores
    revision/     RevisionManager: snapshots, election, retention
    execution/    ExecutionReconciler: bounded, dependency-ordered Jobs
    notebook/     NotebookReconciler: one Pod per running Notebook
    gc.py         owner-reference garbage collector
    manager.py    polling dispatcher
    cli/          Typer CLI
"""

__version__ = "0.3.0"
