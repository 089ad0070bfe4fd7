"""Simple example of fieldsync usage: one shared task from creation to report."""

from datetime import time

import fieldsync
from fieldsync.schemas import LogCreate, TaskCreate
from fieldsync.states import DelayReason, EventKind, WorkerRole


def main():
    fs = fieldsync.FieldSync.from_config(fieldsync.Config(database_url="sqlite:///fieldsync_example.db"))
    store = fs.store

    # Workers are managed outside fieldsync; add a few for the example
    dispatcher = store.add_worker("Dorota", WorkerRole.DISPATCHER)
    anna = store.add_worker("Anna", work_start=time(6, 0), work_end=time(14, 0))
    ben = store.add_worker("Ben")

    task = fs.create_task(
        TaskCreate(
            description="Move pallets to hall B",
            scheduled_date=store.today(),
            location_from="Hall A",
            location_to="Hall B",
            assigned_to=anna.id,
        ),
        created_by=dispatcher.id,
    )
    print(f"Created task {task.id}")

    fs.join(task.id, ben.id)
    fs.change_status(task.id, "in_progress", anna.id)
    fs.add_log(
        task.id,
        LogCreate(actor_id=ben.id, log_type=EventKind.DELAY, delay_reason=DelayReason.WAITING, delay_minutes=10),
    )

    result = fs.change_status(task.id, "completed", anna.id)
    print(f"Anna done, still working: {[w.name for w in result.still_working]}")
    result = fs.change_status(task.id, "completed", ben.id)
    print(f"Task status: {result.status}")

    for event in fs.list_logs(task.id):
        print(f"  {event.occurred_at:%H:%M} {event.actor_name}: {event.kind} {event.transition or event.message or ''}")

    inbox = fs.notifications(dispatcher.id)
    print(f"Dispatcher has {inbox.unread_count} unread notifications")

    report = fs.report("today")
    for w in report.workers:
        print(f"{w.name}: {w.work_minutes} min worked, {w.delay_minutes} min delayed, {w.efficiency}%")

    fs.close()


if __name__ == "__main__":
    main()
