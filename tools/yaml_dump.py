"""Convert generated JSON fixtures to YAML for review."""

from __future__ import annotations

from pathlib import Path
import json
import sys

import yaml

ROOT = Path(__file__).resolve().parent.parent


class PlainDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=None)


PlainDumper.add_representer(str, _str_representer)


def dump_yaml(data: dict) -> str:
    return yaml.dump(data, Dumper=PlainDumper, sort_keys=False, width=4096)


def write_yaml(path: Path, data: dict) -> None:
    path.write_text(dump_yaml(data))


def main(argv: list[str]) -> int:
    src = Path(argv[0]) if argv else ROOT / "fixtures"
    dst = Path(argv[1]) if len(argv) > 1 else ROOT / "fixtures-yaml"

    count = 0
    for path in sorted(src.rglob("*.json")):
        target = dst / path.relative_to(src).with_suffix(".yaml")
        target.parent.mkdir(parents=True, exist_ok=True)
        write_yaml(target, json.loads(path.read_text()))
        count += 1

    print(f"Wrote {count} YAML files to {dst}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
