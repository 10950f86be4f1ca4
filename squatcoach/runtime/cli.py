# squatcoach/runtime/cli.py
from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from squatcoach.counter.session import SquatSessionManager
from squatcoach.runtime.schemas import LandmarkMessage


def iter_messages(path: Path) -> Iterator[LandmarkMessage]:
    """Yield landmark messages from a JSON file ({"frames": [...]}) or JSONL."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        for line in text.splitlines():
            if line.strip():
                yield LandmarkMessage.model_validate_json(line)
        return
    data = json.loads(text)
    frames = data.get("frames", []) if isinstance(data, dict) else data
    if not isinstance(frames, list):
        raise ValueError(f"expected a list of frames, got {type(frames).__name__}")
    for i, obj in enumerate(frames):
        if not isinstance(obj, dict):
            raise ValueError(f"frame {i} is not an object")
        obj.setdefault("frameNumber", i)
        yield LandmarkMessage.model_validate(obj)


def replay(path: Path, manager: SquatSessionManager) -> int:
    last_count = 0
    for msg in iter_messages(path):
        res = manager.process_frame(msg.to_frame())
        if res.rep_count != last_count:
            last_count = res.rep_count
            snap = res.last_rep
            line = f"Frame {res.frame_number}: rep {res.rep_count}"
            if snap is not None:
                line += f" (knee {snap.min_knee_angle}..{snap.max_knee_angle}°, hip max {snap.max_hip_angle}°)"
            print(line, flush=True)
            for w in res.active_warnings:
                if w.rep_index == res.rep_count:
                    print(f"  warning: {w.message}", flush=True)
    return last_count


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="squatcoach-replay", description="Replay recorded landmark frames through the squat counter.")
    parser.add_argument("file", type=Path, help="JSON ({\"frames\": [...]}) or JSONL file of landmark frames")
    parser.add_argument("-v", "--verbose", action="store_true", help="log per-frame angle debug output")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    manager = SquatSessionManager()
    try:
        total = replay(args.file, manager)
    except FileNotFoundError:
        print(f"Error: {args.file} not found", file=sys.stderr)
        return 1
    except (ValueError, ValidationError) as e:
        print(f"Error: {args.file} is not a valid landmark recording: {e}", file=sys.stderr)
        return 1
    finally:
        manager.close()

    print(f"\nTotal reps: {total}", flush=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
