"""Input/output layer for the assignment pipeline.

Public API:
    load_input(directory)        -- read CSV input dir -> (snapshot, meta)
    write_output(run, dir)       -- write summary.json + run log to output dir
    extract_from_snapshot(...)   -- snapshot dict -> CSV input files
    extract_from_db(...)         -- SQLite store -> CSV input files
    render_xlsx(run, path)       -- generate multi-sheet run workbook
    persist_run(run, db_path)    -- commit a run to the SQLite store atomically
"""

from .reader import load_input
from .writer import write_output

__all__ = [
    "load_input",
    "write_output",
]

# Lazy imports for optional heavy dependencies (sqlite3, openpyxl).
def extract_from_snapshot(*args, **kwargs):
    from .extractors import extract_from_snapshot as _fn
    return _fn(*args, **kwargs)

def extract_from_db(*args, **kwargs):
    from .extractors import extract_from_db as _fn
    return _fn(*args, **kwargs)

def render_xlsx(*args, **kwargs):
    from .xlsx import render_xlsx as _fn
    return _fn(*args, **kwargs)

def persist_run(*args, **kwargs):
    from .db_loader import persist_run as _fn
    return _fn(*args, **kwargs)

def load_snapshot_from_db(*args, **kwargs):
    from .db_loader import load_snapshot_from_db as _fn
    return _fn(*args, **kwargs)
