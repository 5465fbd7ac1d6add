"""Periodic GC pauses and their effect on tail latency.

Every server runs a GarbageCollector. Pauses stall the server's processing
loop and are charged to every request waiting in its queue, so the tail of
the latency histogram is dominated by GC rather than by processing time.

## Key Observations

- ConcurrentGC (short, frequent pauses) barely moves p99.
- GenerationalGC adds a long tail once heap pressure triggers major cycles.
- StopTheWorld pauses are rare but push p99 to roughly the pause length.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from fanoutsim import (
    ConcurrentGC,
    ConstantLatency,
    GenerationalGC,
    Simulation,
    SimulationConfig,
    StopTheWorld,
)

STRATEGIES = {
    "none": None,
    "concurrent": ConcurrentGC,
    "generational": GenerationalGC,
    "stop-the-world": StopTheWorld,
}


def run_strategy(name: str, *, duration_s: float = 60.0, seed: int = 7) -> tuple[pd.DataFrame, float]:
    """Run one GC strategy; return the histogram as a DataFrame and p99."""
    config = SimulationConfig(
        source_count=4,
        server_count=4,
        global_rps=100,
        latency_fn=ConstantLatency(20),
        network_delay_ms=10,
        load_balancing="leastloaded",
        gc_strategy=STRATEGIES[name],
        seed=seed,
    )
    sim = Simulation(config)
    sim.run_for(duration_s * 1000)
    snapshot = sim.snapshot()
    return snapshot.histogram_dataframe(), snapshot.p99_ms


def visualize(histograms: dict[str, pd.DataFrame], output_dir: Path) -> None:
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    output_dir.mkdir(parents=True, exist_ok=True)
    fig, ax = plt.subplots(figsize=(10, 5))
    for name, df in histograms.items():
        ax.step(df["lower_ms"], df["count"], where="post", label=name)
    ax.set_yscale("log")
    ax.set_xlabel("Latency (ms)")
    ax.set_ylabel("Requests (last 20s)")
    ax.set_title("Latency histogram by GC strategy")
    ax.legend()
    ax.grid(True, alpha=0.2)
    fig.tight_layout()
    path = output_dir / "gc_pause_tail_latency.png"
    fig.savefig(path, dpi=150)
    plt.close(fig)
    print(f"Saved: {path}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="GC pause tail latency demo")
    parser.add_argument("--duration", type=float, default=60.0)
    parser.add_argument("--output", type=str, default="output/gc_pause_tail_latency")
    parser.add_argument("--no-viz", action="store_true")
    args = parser.parse_args()

    histograms = {}
    print(f"\n  {'GC strategy':<16s} {'p99 ms':>8s}")
    for name in STRATEGIES:
        df, p99 = run_strategy(name, duration_s=args.duration)
        histograms[name] = df
        print(f"  {name:<16s} {p99:>8.1f}")

    if not args.no_viz:
        visualize(histograms, Path(args.output))
