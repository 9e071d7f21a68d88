# scripts/mcp_smoke_client.py
import asyncio
import logging
import os

from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    force=True,
)
for name in ["mcp", "mcp.client", "httpx"]:
    logging.getLogger(name).setLevel(logging.DEBUG)

BASE = os.getenv("SALON_MCP_BASE", "http://127.0.0.1:8000/mcp")
PRESET = os.getenv("SALON_MCP_PRESET", "last30")


async def main():
    print("SALON_MCP_BASE =", BASE)
    async with streamablehttp_client(BASE) as (r, w, _):
        async with ClientSession(r, w) as s:
            await s.initialize()
            tools = await s.list_tools()
            print("TOOLS:", [t.name for t in tools.tools])

            res = await s.call_tool("ping", {"message": "hello"})
            print("PING RESULT:", res)

            res = await s.call_tool("reports_summary", {"input": {"preset": PRESET}})
            print("SUMMARY RESULT:", res)

if __name__ == "__main__":
    asyncio.run(main())
