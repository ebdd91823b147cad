"""Protean Engine runner for the commerce domain.

In production, event processing is asynchronous: notification dispatch and
order status e-mails run here rather than inside the request.

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine


async def run():
    from commerce.domain import commerce

    commerce.init()
    await Engine(commerce).run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
