"""Event type constants.

Learn: Two families live here:
1. Audit event types — stored in the events table ("withdrawal.received")
2. Wire event names — what connected clients listen for ("new_withdrawal").
   Mobile and dashboard clients are built against these names, so they
   never change.
"""

# ─── Audit log ───────────────────────────────────────────

WITHDRAWAL_RECEIVED = "withdrawal.received"
WITHDRAWAL_STATUS_CHANGED = "withdrawal.status_changed"
ADMIN_TOKEN_REGISTERED = "admin_token.registered"
ADMIN_TOKEN_REMOVED = "admin_token.removed"
ADMIN_TOKEN_PRUNED = "admin_token.pruned"
PUSH_DISPATCHED = "push.dispatched"
WORKER_CALLBACK_FAILED = "worker.callback_failed"

# ─── Broadcast (client-facing) ───────────────────────────

NEW_WITHDRAWAL = "new_withdrawal"
STATUS_UPDATED = "status_updated"
