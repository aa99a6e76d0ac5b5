"""Shared YAML dump helpers for conformance vectors."""

from __future__ import annotations

from pathlib import Path

import yaml


class PlainDumper(yaml.SafeDumper):
    pass


def _str_representer(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    return dumper.represent_scalar("tag:yaml.org,2002:str", data, style=None)


def _bytes_representer(dumper: yaml.SafeDumper, data: bytes) -> yaml.ScalarNode:
    # Addresses and asset ids travel as lowercase hex, never as !!binary
    return dumper.represent_scalar("tag:yaml.org,2002:str", data.hex(), style=None)


PlainDumper.add_representer(str, _str_representer)
PlainDumper.add_representer(bytes, _bytes_representer)


def dump_yaml(data: dict) -> str:
    return yaml.dump(data, Dumper=PlainDumper, sort_keys=False, width=4096)


def write_yaml(path: Path, data: dict) -> None:
    path.write_text(dump_yaml(data))
