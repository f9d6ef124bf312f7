"""BookSwap vertical: peer-to-peer book exchange.

Brings the patterns together for one domain:
- SQLAlchemy models with single-table book inheritance
- Reciprocal match finder over the catalog
- Compare-and-set match state machine
- Append-only conversation ledger per match
- FastAPI router and MCP server over MatchService
"""
