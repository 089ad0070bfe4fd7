"""Example field client: work offline, let the queue catch up when the API is reachable.

Start the API first:
    fieldsync serve --db-url sqlite:///fieldsync_example.db
"""

import asyncio
import logging
from datetime import date

from fieldsync import ClientConfig
from fieldsync.client import FieldClient

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


async def main():
    config = ClientConfig(base_url="http://127.0.0.1:8000", actor_id=2, drain_interval_seconds=5)

    async with FieldClient(config) as client:
        today = date.today()
        tasks = await client.refresh(today)
        print(f"{len(tasks)} tasks for {today}")
        if not tasks:
            return

        task_id = tasks[0]["id"]
        client.start(today, task_id)
        client.add_log(task_id, "note", message="Gate B closed, using gate C")
        print(f"Local status: {client.tasks_for(today)[0]['status']}, {len(client.queue.pending)} actions queued")

        # Give the background drain a moment
        await asyncio.sleep(1)
        print(f"Pending after drain: {len(client.queue.pending)}, sync errors: {client.sync_errors}")

        await client.prefetch_neighbours(today)


if __name__ == "__main__":
    asyncio.run(main())
