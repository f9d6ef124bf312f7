"""
MCP Server Template: FastMCP Pattern

Every MCP server in the project follows this pattern:
- Built by create_mcp_server() so all servers share the health check
- Typed parameters and dict return values
- Domain errors returned as {"error": kind, "detail": ...} instead of raised
"""
from datetime import datetime, timezone

from fastmcp import FastMCP


def create_mcp_server(
    name: str,
    instructions: str = "",
) -> FastMCP:
    """Factory for creating MCP servers with standard config."""
    mcp = FastMCP(name, instructions=instructions or None)

    # Register health check tool (all servers get this)
    @mcp.tool()
    def health_check() -> dict:
        """Check if this MCP server is operational."""
        return {
            "server": name,
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return mcp
