#!/usr/bin/env python3
"""
Interactive local wizard harness (no HTTP, in-memory backend).

Usage:
  python3 scripts/wizard_local.py [clinic|complex|organization]

What it does:
- Starts a session for the chosen plan against MockOnboardingBackend
- Shows the draft for each sub-step (including inherited values)
- Reads a JSON object per sub-step and submits it; an empty line submits the draft as is
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from setup_wizard.application.exceptions import WizardError
from setup_wizard.application.use_cases.wizard import OnboardingWizard
from setup_wizard.infrastructure.backend.mock_backend import MockOnboardingBackend
from setup_wizard.infrastructure.scheduler.asyncio_scheduler import AsyncioScheduler
from setup_wizard.infrastructure.store.memory_store import MemorySessionStore


def _print_header(wizard: OnboardingWizard) -> None:
    session = wizard.session
    print("\nLocal Setup Wizard")
    print("-" * 60)
    print(f"session_id: {session.session_id}")
    print(f"plan: {session.plan_type.value}")
    print("Enter a JSON object to submit, an empty line to accept the draft.")
    print("Commands: /back, /restart, /quit")
    print("-" * 60)


async def main() -> None:
    plan = sys.argv[1] if len(sys.argv) > 1 else "clinic"
    backend = MockOnboardingBackend()
    wizard = OnboardingWizard(backend, AsyncioScheduler(), store=MemorySessionStore())
    try:
        wizard.select_plan(plan, {"userId": "local_user_1"})
    except WizardError as e:
        print(f"ERROR: {e}")
        return
    _print_header(wizard)

    while not wizard.session.is_complete:
        print(f"\n[{wizard.session.step_key}] {wizard.progress()}% done")
        print(json.dumps(wizard.current_draft(), indent=2, ensure_ascii=False))
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nBye!")
            return

        if line in ("/quit", "/exit"):
            print("Bye!")
            return
        if line == "/back":
            wizard.back()
            continue
        if line == "/restart":
            wizard.restart()
            continue

        try:
            payload = json.loads(line) if line else {}
        except json.JSONDecodeError as e:
            print(f"Invalid JSON: {e}")
            continue

        try:
            result = await wizard.submit(payload)
        except WizardError as e:
            print(f"Blocked: {e}")
            continue
        if result.warning:
            print(f"Warning: {result.warning}")

    print("\nSetup complete.")
    print(f"Saved sections: {sorted('/'.join(k) for k in backend.saved)}")
    print(f"Completed entities: {backend.completed}")


if __name__ == "__main__":
    asyncio.run(main())
