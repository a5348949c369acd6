"""Protean Engine runner for the quotations domain.

Starts the Engine that processes quotation events asynchronously
(placement emails) when the domain runs with ``event_processing = "async"``.

Usage:
    python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    from quotations.domain import quotations

    quotations.init()
    return quotations


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Quotations Engine runner")
    parser.parse_args()

    asyncio.run(run())


if __name__ == "__main__":
    main()
