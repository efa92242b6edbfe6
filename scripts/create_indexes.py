"""Create the report indexes out of band (the API also attempts this at startup).

Run from the project root: python -m scripts.create_indexes
"""
import asyncio
import logging

from app.db import MongoConnection, ensure_indexes, resolve_config


async def main():
    mongo = MongoConnection(resolve_config())
    await mongo.connect()
    try:
        errors = await ensure_indexes(mongo.reports)
    finally:
        await mongo.close()
    print("Indexes created" if not errors else f"Index warnings: {'; '.join(errors)}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
