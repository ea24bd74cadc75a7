"""MCP error classes for the DevForge tool server."""

INVALID_REQUEST = "INVALID_REQUEST"
INVALID_INPUT = "INVALID_INPUT"
TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"


class MCPError(Exception):
    """MCP protocol error."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(self.message)
