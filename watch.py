#!/usr/bin/env python3
"""
Watch the fractalmind simulations run headless.

Usage:
    # Run 3000 ticks of everything, print a status every 500:
    python watch.py --ticks 3000 --every 500

    # Only the ecosystem, reproducible:
    python watch.py --mode ecosystem --seed 42

    # Calm preset, save a final frame (requires matplotlib):
    python watch.py --preset meditation --plot frame.png

    # Dump the final state as JSON:
    python watch.py --export state.json

    # Run until Ctrl-C at the configured frame rate:
    python watch.py --ticks 0 --paced
"""

import argparse
import logging

from fractalmind.core.config import PRESETS, SimulationConfig, apply_preset
from fractalmind.core.orchestrator import Mode, Orchestrator


def build_config(args):
    """Create the simulation config from CLI args."""
    config = SimulationConfig(seed=args.seed)
    if args.preset:
        config = apply_preset(args.preset, config)
    return config


def format_line(orch):
    """One-line progress summary."""
    state = orch.get_system_state()
    p = state["consciousness"]["parameters"]
    eco = state["simulations"]["ecosystem"]
    ai = state["simulations"]["ai_experience"]
    return (
        f"tick {state['tick']:>6}  "
        f"C={p['complexity']:.2f} E={p['emergence']:.2f} "
        f"H={p['coherence']:.2f} A={p['adaptation']:.2f}  "
        f"entities={eco['total_entities']:<4} "
        f"threads={ai['processing_threads']:<3} "
        f"insights={ai['emergent_insights']:<3} "
        f"depth={ai['recursive_depth']}"
    )


def save_frame(orch, path):
    from fractalmind.core.canvas import MatplotlibCanvas

    canvas = MatplotlibCanvas(orch.context.width, orch.context.height)
    orch.render(canvas)
    canvas.save(path)
    print(f"[Frame saved to {path}]")


def main():
    parser = argparse.ArgumentParser(description="Run the fractalmind simulations headless")
    parser.add_argument("--ticks", type=int, default=3000, help="Ticks to run, 0 = until Ctrl-C (default: 3000)")
    parser.add_argument("--mode", choices=[m.value for m in Mode], default=Mode.ALL.value,
                        help="Which simulations to run (default: all)")
    parser.add_argument("--preset", choices=sorted(PRESETS), default=None, help="Configuration preset")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--every", type=int, default=500, help="Print status every N ticks (default: 500)")
    parser.add_argument("--paced", action="store_true", help="Hold the configured frame rate")
    parser.add_argument("--plot", default=None, help="Save the final frame as an image (matplotlib)")
    parser.add_argument("--export", default=None, help="Write the final state as JSON")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging level (default: WARNING)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    orch = Orchestrator(build_config(args), mode=Mode(args.mode))

    print(f"\n{'=' * 60}")
    print(f"  fractalmind  mode={orch.mode.value}  preset={args.preset or 'default'}  seed={args.seed}")
    print(f"{'=' * 60}\n")

    def report(o):
        if args.every > 0 and o.context.tick % args.every == 0:
            print(format_line(o))

    try:
        orch.run(max_ticks=args.ticks or None, paced=args.paced, callback=report)
    except KeyboardInterrupt:
        orch.stop()
        print("\n\nStopped.")

    print(orch.witness())

    if args.plot:
        save_frame(orch, args.plot)
    if args.export:
        path = orch.export_state(args.export)
        print(f"[State exported to {path}]")


if __name__ == "__main__":
    main()
