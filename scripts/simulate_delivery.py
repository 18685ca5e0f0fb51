#!/usr/bin/env python3
"""
Delivery Simulation Script
==========================

Standalone script that runs a navigation session against scripted
providers.

This script:
    1. Builds a straight walk from a start point to the target
    2. Optionally makes the indoor provider fail so the satellite
       fallback takes over
    3. Logs every NavigationUpdate and arrival state change
    4. Reports a final summary

Usage:
    python scripts/simulate_delivery.py
    python scripts/simulate_delivery.py --fail-indoor --distance 60
    python scripts/simulate_delivery.py --start-floor 0 --target-floor 2
"""

import argparse
import asyncio
import logging
import math
import os
import sys
import time

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from guided_delivery.config import load_config, setup_logging
from guided_delivery.models import ArrivalState, NavigationUpdate, TargetPoint
from guided_delivery.navigation.formatting import (
    accuracy_quality,
    format_accuracy,
    format_floor,
    format_heading,
)
from guided_delivery.positioning import ScriptedPositionProvider
from guided_delivery.session import start_navigation_session


logger = logging.getLogger(__name__)


METERS_PER_DEGREE_LAT = 111_195.0


def build_walk(
    target: TargetPoint,
    distance_meters: float,
    approach_bearing: float,
    steps: int,
    dwell_steps: int,
    start_floor: int,
    interval_ms: int,
    accuracy: float,
) -> list:
    """
    Build raw fixes walking toward the target, then dwelling on it.

    The floor switches to the target's floor halfway along the walk.
    """
    bearing = math.radians(approach_bearing)
    cos_lat = math.cos(math.radians(target.latitude))
    start_ms = int(time.time() * 1000)

    fixes = []
    for i in range(steps + dwell_steps):
        remaining = max(0.5, distance_meters * (1 - i / steps)) if i < steps else 0.5
        d_north = -remaining * math.cos(bearing)
        d_east = -remaining * math.sin(bearing)
        floor = start_floor if i < steps // 2 else target.floor_level
        fixes.append({
            "latitude": target.latitude + d_north / METERS_PER_DEGREE_LAT,
            "longitude": target.longitude + d_east / (METERS_PER_DEGREE_LAT * cos_lat),
            "floor": floor,
            "accuracy": accuracy,
            "heading": approach_bearing,
            "timestamp": start_ms + i * interval_ms,
        })
    return fixes


async def run_simulation(args: argparse.Namespace) -> dict:
    """
    Run one simulated delivery.

    Returns:
        Summary dict
    """
    settings = load_config(args.config)
    setup_logging(settings)

    # Same shape as the location stored on an order
    target = TargetPoint.from_order_location({
        "latitude": args.latitude,
        "longitude": args.longitude,
        "floor": args.target_floor,
    })
    interval_s = args.interval_ms / 1000.0
    steps = max(1, int(args.distance))
    dwell_steps = int(settings.navigation.confirmation_window_millis / args.interval_ms) + 3

    indoor = ScriptedPositionProvider(
        name="indoor",
        fixes=build_walk(target, args.distance, args.approach_bearing, steps,
                         dwell_steps, args.start_floor, args.interval_ms, 1.5),
        interval_seconds=interval_s,
        fail_on_start=RuntimeError("no venue mapping data") if args.fail_indoor else None,
    )
    satellite = ScriptedPositionProvider(
        name="satellite",
        fixes=build_walk(target, args.distance, args.approach_bearing, steps,
                         dwell_steps, args.start_floor, args.interval_ms, 6.0),
        interval_seconds=interval_s,
    )

    logger.info("=" * 60)
    logger.info("Delivery Simulation")
    logger.info("=" * 60)
    logger.info(f"Target: ({target.latitude}, {target.longitude}) {format_floor(target.floor_level)}")
    logger.info(f"Walk: {args.distance}m from {format_floor(args.start_floor)}")
    logger.info(f"Approach heading: {format_heading(args.approach_bearing)}")
    logger.info(f"Indoor provider failing: {args.fail_indoor}")
    logger.info("=" * 60)

    arrived = asyncio.Event()
    updates = []

    def on_update(update: NavigationUpdate) -> None:
        updates.append(update)
        logger.info(
            f"[{update.sample.source.value}] {update.instruction:<28} "
            f"{update.vector!r} {update.transform!r}"
        )

    def on_state(state: ArrivalState) -> None:
        logger.info(f"Arrival state → {state.phase.value}")

    session = await start_navigation_session(
        target,
        primary=indoor,
        fallback=satellite,
        config=settings.navigation,
        positioning=settings.positioning,
        on_vector_update=on_update,
        on_arrival_state_change=on_state,
        on_error=lambda e: arrived.set(),
        on_arrived=arrived.set,
    )

    timeout = (steps + dwell_steps) * interval_s + 5.0
    try:
        await asyncio.wait_for(arrived.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"No arrival within {timeout:.1f}s")
    finally:
        session.stop()

    metrics = session.get_metrics()
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Updates: {len(updates)}")
    logger.info(f"Final state: {metrics['arrival_phase']}")
    if updates:
        last = updates[-1].sample
        accuracy = last.horizontal_accuracy_meters
        logger.info(
            f"Last fix: {last.source.value}, accuracy {format_accuracy(accuracy)} "
            f"({accuracy_quality(accuracy)})"
        )
    logger.info(f"Stream: {metrics['stream']}")
    logger.info("=" * 60)

    return metrics


def main():
    parser = argparse.ArgumentParser(
        description="Simulate a guided delivery against scripted providers"
    )
    parser.add_argument("--config", type=str, default=None, help="Path to YAML config")
    parser.add_argument("--latitude", type=float, default=51.50135)
    parser.add_argument("--longitude", type=float, default=-0.14189)
    parser.add_argument("--distance", type=float, default=30.0, help="Start distance (m)")
    parser.add_argument("--approach-bearing", type=float, default=45.0)
    parser.add_argument("--start-floor", type=int, default=0)
    parser.add_argument("--target-floor", type=int, default=0)
    parser.add_argument("--interval-ms", type=int, default=200, help="Fix interval (ms)")
    parser.add_argument(
        "--fail-indoor",
        action="store_true",
        help="Make the indoor provider fail so the satellite fallback is used",
    )

    args = parser.parse_args()

    result = asyncio.run(run_simulation(args))

    sys.exit(0 if result["arrival_phase"] == "ARRIVED" else 1)


if __name__ == "__main__":
    main()
