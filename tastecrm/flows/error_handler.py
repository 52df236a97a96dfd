"""
Flow Error Handler - Captures non-fatal errors swallowed by the import pipeline.

When a row's Cultural DNA cannot be generated the row is still saved, but the
failure is recorded here (flow_errors table + logger) so it can be reviewed
through GET /api/flow-errors.

Usage:
    from tastecrm.flows.error_handler import log_flow_error

    try:
        dna = generate_cultural_dna(behaviour)
    except (LLMError, StructuredOutputError) as e:
        log_flow_error(flow="import", stage="cultural_dna", error=e, row_index=i)
        dna = None
"""

import json
import logging
import sqlite3

from tastecrm.db.connection import get_db_conn

logger = logging.getLogger("tastecrm.error_handler")


def log_flow_error(
    flow: str,
    stage: str = None,
    error: Exception = None,
    error_message: str = None,
    row_index: int = None,
    context: dict = None,
    severity: str = "warning",
):
    """Log a non-fatal flow error to the database and logger.

    Args:
        flow: Flow that hit the error (import, column_mapping, ...)
        stage: Step inside the flow (cultural_dna, correlation, insert, ...)
        error: The exception object (optional if error_message provided)
        error_message: Human-readable error description
        row_index: Zero-based index of the parsed CSV row, when row-scoped
        context: Additional context dict
        severity: "warning", "error", or "critical"
    """
    msg = error_message or (str(error) if error else "Unknown error")
    error_type = type(error).__name__ if error else "UnknownError"

    log_extra = {"flow": flow, "stage": stage or "", "severity": severity}
    if row_index is not None:
        log_extra["row_index"] = row_index

    if severity == "critical":
        logger.critical("Flow error in %s/%s: %s", flow, stage, msg, extra=log_extra)
    elif severity == "error":
        logger.error("Flow error in %s/%s: %s", flow, stage, msg, extra=log_extra)
    else:
        logger.warning("Flow error in %s/%s: %s", flow, stage, msg, extra=log_extra)

    try:
        with get_db_conn() as conn:
            conn.execute("""
                INSERT INTO flow_errors
                    (flow, stage, row_index, error_type, error_message, context, severity)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                flow, stage, row_index, error_type, msg,
                json.dumps(context or {}, default=str), severity,
            ))
            conn.commit()
    except sqlite3.Error as db_err:
        # The ledger is best-effort; the logger line above already has the error
        logger.error("Failed to log flow error to DB: %s", db_err)


def _row_to_error(row) -> dict:
    d = dict(row)
    try:
        d["context"] = json.loads(d.get("context") or "{}")
    except ValueError:
        pass
    d["resolved"] = bool(d.get("resolved"))
    return d


def get_errors(flow: str = None, severity: str = None,
               unresolved_only: bool = True, limit: int = 200) -> list:
    """Get flow errors, newest first, optionally filtered."""
    query = "SELECT * FROM flow_errors WHERE 1=1"
    params = []

    if flow:
        query += " AND flow=?"
        params.append(flow)
    if severity:
        query += " AND severity=?"
        params.append(severity)
    if unresolved_only:
        query += " AND resolved=0"

    query += " ORDER BY created_at DESC, id DESC LIMIT ?"
    params.append(limit)

    with get_db_conn() as conn:
        rows = conn.execute(query, params).fetchall()
    return [_row_to_error(r) for r in rows]


def resolve_error(error_id: int) -> bool:
    """Mark a flow error as resolved. Returns False if the id is unknown."""
    with get_db_conn() as conn:
        cur = conn.execute("UPDATE flow_errors SET resolved=1 WHERE id=?", (error_id,))
        conn.commit()
        return cur.rowcount > 0
