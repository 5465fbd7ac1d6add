"""fanoutsim: discrete-event simulation of request fan-out and load balancing.

Sources emit requests, a load balancing policy routes each one to a server,
servers drain a FIFO queue with simulated processing latency and GC pauses,
and completed round trips feed per-link predictive load estimators and a
windowed latency histogram.

Example:
    from fanoutsim import Simulation, SimulationConfig

    sim = Simulation(SimulationConfig(source_count=4, server_count=10,
                                      global_rps=200, load_balancing="leastloaded"))
    sim.run_for(30_000)
    snapshot = sim.snapshot()
"""

import logging

logging.getLogger("fanoutsim").addHandler(logging.NullHandler())

from fanoutsim.components import (
    ConcurrentGC,
    GenerationalGC,
    LinkStats,
    Request,
    Server,
    Source,
    StopTheWorld,
)
from fanoutsim.components.load_balancer import Policy, create_strategy
from fanoutsim.config import ApertureConfig, HistogramConfig, PredictiveConfig, SimulationConfig
from fanoutsim.core import Event, Instant
from fanoutsim.load import ConstantLatency, ConstantWork, NormalJitterLatency, ProportionalLatency
from fanoutsim.logging_config import (
    configure_from_env,
    disable_logging,
    enable_console_logging,
    enable_file_logging,
    enable_json_logging,
    set_level,
    set_module_level,
    stamp_sim_time,
)
from fanoutsim.simulation import PENALTY_MS, Simulation
from fanoutsim.sketching import Histogram, LatencySeries, SlidingMedian, WindowedHistogram
from fanoutsim.snapshot import SimulationSnapshot

__version__ = "0.1.0"

__all__ = [
    "PENALTY_MS",
    "ApertureConfig",
    "ConcurrentGC",
    "ConstantLatency",
    "ConstantWork",
    "Event",
    "GenerationalGC",
    "Histogram",
    "HistogramConfig",
    "Instant",
    "LatencySeries",
    "LinkStats",
    "NormalJitterLatency",
    "Policy",
    "PredictiveConfig",
    "ProportionalLatency",
    "Request",
    "Server",
    "Simulation",
    "SimulationConfig",
    "SimulationSnapshot",
    "SlidingMedian",
    "Source",
    "StopTheWorld",
    "WindowedHistogram",
    "configure_from_env",
    "create_strategy",
    "disable_logging",
    "enable_console_logging",
    "enable_file_logging",
    "enable_json_logging",
    "set_level",
    "set_module_level",
    "stamp_sim_time",
]
