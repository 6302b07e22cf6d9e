"""Narrative Decisions — dev launcher.

    python main.py --snapshot scene.json --character hero.json
        Run one detect/generate cycle and print the decision as JSON.
    python main.py --serve
        Start the decision API with uvicorn in watch mode.
"""

import argparse
import asyncio
import json
import logging
import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).parent
load_dotenv(ROOT / ".env")

HOST = os.getenv("HOST", "127.0.0.1")
PORT = os.getenv("PORT", "13015")


async def run_cycle(snapshot_path: Path, character_path: Path | None, force: bool) -> int:
    from narrative_decisions.config import ServiceConfig
    from narrative_decisions.models import CharacterSummary, NarrativeSnapshot
    from narrative_decisions.pipeline.orchestrator import DecisionOrchestrator

    snapshot = NarrativeSnapshot.model_validate_json(snapshot_path.read_text())
    character = (
        CharacterSummary.model_validate_json(character_path.read_text())
        if character_path else CharacterSummary()
    )
    orchestrator = DecisionOrchestrator(ServiceConfig.from_env(ROOT / ".env"))

    detection = orchestrator.detect_decision_point(snapshot, character)
    print(f"gate: present={detection.present} score={detection.score:.2f} ({detection.reason})",
          file=sys.stderr)
    if not detection.present and not force:
        return 1

    decision = await orchestrator.generate_decision(snapshot, character)
    print(json.dumps(decision.model_dump(by_alias=True), indent=2))
    if orchestrator.last_error:
        print(f"fallback used: {orchestrator.last_error.kind}: {orchestrator.last_error.message}",
              file=sys.stderr)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Narrative Decisions dev launcher")
    parser.add_argument("--snapshot", type=Path, default=None,
                        help="Narrative snapshot JSON file")
    parser.add_argument("--character", type=Path, default=None,
                        help="Character summary JSON file")
    parser.add_argument("--force", action="store_true",
                        help="Generate even when the decision gate stays closed")
    parser.add_argument("--serve", action="store_true",
                        help="Start the decision API")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    if args.serve:
        print(f"Starting decision API on http://{HOST}:{PORT} ...")
        proc = subprocess.Popen(
            [sys.executable, "-m", "uvicorn", "narrative_decisions.app:app",
             "--reload", "--host", HOST, "--port", PORT],
            cwd=ROOT,
        )
        try:
            sys.exit(proc.wait())
        except KeyboardInterrupt:
            print("\nShutting down...")
            proc.terminate()
            proc.wait()
            sys.exit(0)

    if args.snapshot is None:
        parser.error("--snapshot is required unless --serve is given")
    sys.exit(asyncio.run(run_cycle(args.snapshot, args.character, args.force)))


if __name__ == "__main__":
    main()
