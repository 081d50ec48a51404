from __future__ import annotations

import argparse
import logging
from pathlib import Path

from plume_plot.config import DEFAULT_CONFIG, load_config
from plume_plot.export import FORMATS
from plume_plot.walkthrough import build_walkthrough, load_penguins, render_walkthrough


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="plume")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render every walkthrough step from a penguins CSV.")
    render.add_argument("--data", type=Path, required=True, help="CSV with species, bill_length_mm and bill_depth_mm columns.")
    render.add_argument("--out", type=Path, required=True, help="Output directory; created when missing.")
    render.add_argument("--dpi", type=float, default=150.0)
    render.add_argument("--format", choices=sorted(FORMATS), default="png")
    render.add_argument("--config", type=Path, default=None, help="JSON file of plot options.")

    steps = sub.add_parser("steps", help="List walkthrough steps without rendering.")
    steps.add_argument("--data", type=Path, required=True)
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    if args.command == "render":
        if args.dpi <= 0:
            raise ValueError("dpi must be > 0")
        config = load_config(args.config) if args.config is not None else DEFAULT_CONFIG
        data = load_penguins(args.data)
        written = render_walkthrough(data, args.out, dpi=args.dpi, format=args.format, config=config)
        for path in written:
            print(f"wrote {path}")
        return

    if args.command == "steps":
        data = load_penguins(args.data)
        for step in build_walkthrough(data):
            print(f"{step.name}: {type(step.obj).__name__} {step.width_in:g}x{step.height_in:g} in")
        return

    raise RuntimeError(f"unsupported command: {args.command}")


if __name__ == "__main__":
    main()
