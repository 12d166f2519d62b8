"""
Error taxonomy for workspace tools and the execution channel.

Every failure a tool can report maps onto one of these classes. The tool
registry catches them at its boundary and turns them into a failed
ToolResult; nothing here is meant to escape ToolRegistry.execute().
"""


class WorkbenchError(Exception):
    """Base class for all expected tool and channel failures."""
    error_type = "error"


class ValidationError(WorkbenchError):
    """A required argument is missing, mistyped, or malformed."""
    error_type = "validation"


class NotFoundError(WorkbenchError):
    """A path or tool name does not resolve."""
    error_type = "not_found"


class ConflictError(WorkbenchError):
    """A name collision, cyclic move, or broken tree invariant."""
    error_type = "conflict"


class ExecutionTimeoutError(WorkbenchError, TimeoutError):
    """The runtime did not reply before the deadline."""
    error_type = "timeout"


class RuntimeFaultError(WorkbenchError):
    """The isolated runtime reported an error for the request."""
    error_type = "runtime_fault"


class ChannelStateError(WorkbenchError):
    """The channel or registry is not in a state that allows the call."""
    error_type = "channel_state"
