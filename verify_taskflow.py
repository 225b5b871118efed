#!/usr/bin/env python3
"""
Quick verification that a TaskFlow session works end-to-end in memory mode.
"""
import asyncio
from datetime import datetime, timedelta

from taskflow.auth import MemoryAuth
from taskflow.notify import Notifier
from taskflow.remote import MemoryClient
from taskflow.schema import Priority, TaskDraft
from taskflow.store import TaskStore
from taskflow.views import dashboard


async def run() -> bool:
    print("=" * 60)
    print("TaskFlow Verification (memory mode)")
    print("=" * 60)

    client = MemoryClient()
    auth = MemoryAuth()
    notifier = Notifier()
    notifier.subscribe(lambda n: print(f"   [{n.severity.value}] {n.title}: {n.description}"))
    store = TaskStore(client, notifier)

    print("\n[1/6] Signing up...")
    user = await auth.sign_up("demo@example.com", "secret", "demo")
    print(f"✅ Signed up as {user.email}")

    print("\n[2/6] Loading session (bootstrap projects)...")
    await store.set_user(user)
    names = [p.name for p in store.projects]
    if names != ["Personal", "Work", "Shopping"]:
        print(f"❌ Unexpected projects: {names}")
        return False
    print(f"✅ Projects: {', '.join(names)}")

    print("\n[3/6] Adding tasks...")
    shopping = store.projects[2]
    milk = await store.add_task(TaskDraft(title="Buy milk", project_id=shopping.id))
    await store.add_task(TaskDraft(
        title="Quarterly report",
        project_id=store.projects[1].id,
        priority=Priority.HIGH,
        due_date=datetime.now() + timedelta(days=3),
    ))
    if not milk.ok or store.tasks[1].id != milk.value.id:
        print("❌ Task creation failed")
        return False
    print(f"✅ {len(store.tasks)} tasks, newest first: {store.tasks[0].title}")

    print("\n[4/6] Toggling completion...")
    await store.toggle_task_completion(milk.value.id)
    print(f"✅ Completed: {store.get_task(milk.value.id).completed}")

    print("\n[5/6] Dashboard filters...")
    for view in ("all", "today", "upcoming", f"project-{shopping.id}"):
        board = dashboard(store, view)
        print(f"   #{view:<20} {board['title']:<12} {len(board['tasks'])} task(s)")
    print("✅ Filters computed")

    print("\n[6/6] Deleting and signing out...")
    await store.delete_task(milk.value.id)
    await auth.sign_out()
    await store.set_user(None)
    print(f"✅ Tasks after sign-out: {len(store.tasks)}")

    print("\n" + "=" * 60)
    print("All checks passed")
    print("=" * 60)
    return True


def main():
    ok = asyncio.run(run())
    raise SystemExit(0 if ok else 1)


if __name__ == "__main__":
    main()
