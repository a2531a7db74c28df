"""Protocol constants.

Keep these in one place to avoid stringly-typed message handling.
"""

# Slots present on every request.
OP = "op"
ID = "id"

# Common optional slots.
SESSION = "session"
STATUS = "status"
PRINTER = "printer"
PRINT_OPTIONS = "print-options"

# Status values. The core itself only ever produces UNKNOWN_OP (through the
# fallback handler) and the generic ERROR/DONE pair around it; everything
# else belongs to the operations that use it.
DONE = "done"
ERROR = "error"
UNKNOWN_OP = "unknown-op"
UNKNOWN_SESSION = "unknown-session"
SESSION_CLOSED = "session-closed"
INTERRUPTED = "interrupted"
SESSION_IDLE = "session-idle"
INTERRUPT_ID_MISMATCH = "interrupt-id-mismatch"
NEED_INPUT = "need-input"
EVAL_ERROR = "eval-error"
