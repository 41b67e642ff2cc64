"""
Tangled Strands - Main Simulation
=================================
Headless orchestrator for three strands anchored near a common point
(a walker's hand) whose far ends are driven from outside (three dogs).

This simulation wires together:
1. PhysicsWorld - rope dynamics, tangles, crossing detection
2. CrossingDetector - one braid letter per physical crossing
3. BraidTracker - running B3 word and complexity metrics

Endpoint motion is supplied by the caller (set_endpoints, or a driver
passed to run()); nothing here decides where the strands go.
"""

import logging
import numpy as np
import yaml
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ropes import PhysicsWorld, Rope, RopeOptions, WorldConfig
from braids import BraidTracker, CrossingDetector


logger = logging.getLogger(__name__)


class TangleSimulation:
    """
    Main simulation controller.

    Simulated time (not wall-clock time) drives the braid tracker, so runs
    are reproducible.
    """

    MAX_DT = 1.0 / 30.0

    def __init__(self, config_path: Optional[str] = None):
        if config_path:
            with open(config_path, 'r') as f:
                self.config = yaml.safe_load(f)
        else:
            self.config = self._default_config()

        self.world = PhysicsWorld(config=WorldConfig.from_dict(self.config))

        strands = self.config['strands']
        self.strand_names: List[str] = list(strands['names'])
        self.time = 0.0
        self.dt = self.config['simulation']['timestep']
        self.running = False

        self.tracker = BraidTracker(
            self.strand_names,
            debounce_window=self.config['simulation']['debounce_window'],
            clock=lambda: self.time
        )
        self.detector = CrossingDetector(self.tracker)

        self.world.on_crossing(self._handle_crossing)
        self.world.on_separation(self.detector.on_separation)
        self.world.on_tangle_formed(self._handle_tangle_formed)
        self.world.on_tangle_broken(self._handle_tangle_broken)

        self.ropes: List[Rope] = []
        self.event_log: List[Dict] = []
        self._build_strands()

    def _default_config(self) -> Dict:
        """Default configuration if no file provided"""
        return {
            'world': {
                'gravity': [0.0, 20.0],
                'solver_iterations': 8,
                'allow_free_crossing': True,
            },
            'tangle': {
                'friction_coefficient': 0.3,
                'lock_threshold': 50.0,
            },
            'strands': {
                'names': ['A', 'B', 'C'],
                'length': 120.0,
                'segments': 15,
                'anchor': [0.0, 0.0],
                'spread_deg': 60.0,
                'hand_offsets': [[-4.0, 0.0], [0.0, 2.0], [4.0, 0.0]],
                'mass': 0.05,
                'stiffness': 1.0,
                'bend_stiffness': 0.2,
                'damping': 0.03,
                'thickness': 3.0,
            },
            'simulation': {
                'timestep': 1.0 / 60.0,
                'duration': 20.0,
                'debounce_window': 0.2,
            },
        }

    def _build_strands(self):
        """Fan the strands out ahead of the anchor, both ends pinned"""
        strands = self.config['strands']
        anchor = np.asarray(strands['anchor'], dtype=np.float64)
        spread = np.radians(strands['spread_deg'])
        reach = strands['length'] * 0.7
        options = RopeOptions(
            mass=strands['mass'],
            stiffness=strands['stiffness'],
            bend_stiffness=strands['bend_stiffness'],
            damping=strands['damping'],
            thickness=strands['thickness']
        )

        count = len(self.strand_names)
        for slot in range(count):
            angle = -np.pi / 2 + (slot - (count - 1) / 2) * spread
            start = anchor + np.asarray(strands['hand_offsets'][slot], dtype=np.float64)
            end = anchor + reach * np.array([np.cos(angle), np.sin(angle)])

            rope = self.world.create_rope(start, end, strands['segments'], options)
            rope.pin_start()
            rope.pin_end()
            self.tracker.register_rope(rope.rope_id, slot)
            self.ropes.append(rope)

        logger.info("Built %d strands of %d segments", count, strands['segments'])

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _handle_crossing(self, rope_a, rope_b, segment_a, segment_b, sign, point):
        event = self.detector.on_crossing(rope_a, rope_b, segment_a, segment_b, sign, point)
        if event is None:
            return
        self.event_log.append({
            'type': 'crossing',
            'time': event.time,
            'description': event.description,
            'crossing': str(event.crossing),
            'point': point.copy(),
        })

    def _handle_tangle_formed(self, tangle, rope_a, rope_b, point):
        name_a = self._strand_name(rope_a)
        name_b = self._strand_name(rope_b)
        self.event_log.append({
            'type': 'tangle_formed',
            'time': self.time,
            'description': f"Tangle formed: {name_a} ↔ {name_b} ({np.degrees(tangle.wrap_angle):.0f}°)",
            'tangle_id': tangle.tangle_id,
            'point': point.copy(),
        })

    def _handle_tangle_broken(self, tangle):
        self.event_log.append({
            'type': 'tangle_broken',
            'time': self.time,
            'description': f"Tangle {tangle.tangle_id} broke free (was {'locked' if tangle.is_locked else 'loose'})",
            'tangle_id': tangle.tangle_id,
        })

    def _strand_name(self, rope) -> str:
        if rope in self.ropes:
            return self.strand_names[self.ropes.index(rope)]
        return f"Rope {rope.rope_id}"

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def set_endpoints(self, slot: int, start=None, end=None, end_height: Optional[float] = None):
        """Move a strand's ends; end_height lifts the far end for over/under ordering"""
        rope = self.ropes[slot]
        if start is not None:
            rope.move_start(start)
        if end is not None:
            rope.move_end(end)
        if end_height is not None:
            rope.set_height_profile(0.0, end_height)

    def step(self, dt: Optional[float] = None) -> Dict:
        """
        Advance one tick.

        Returns telemetry for the caller.
        """
        dt = min(dt if dt is not None else self.dt, self.MAX_DT)
        self.time += dt
        self.world.step(dt)

        return {
            'time': self.time,
            'positions': [
                np.array([p.position for p in rope.particles]) for rope in self.ropes
            ],
            'tangles': self.world.get_tangle_stats(),
            'crossings': self.tracker.braid_word.length,
        }

    def run(self,
            duration: Optional[float] = None,
            driver: Optional[Callable[["TangleSimulation", float], None]] = None,
            callback: Optional[Callable[[Dict], None]] = None):
        """
        Run for a simulated duration.

        Args:
            duration: Simulation time in seconds (default from config)
            driver: Called before each step to move the endpoints
            callback: Called after each step with telemetry
        """
        if duration is None:
            duration = self.config['simulation']['duration']

        self.running = True
        start_time = time.time()
        logger.info("Starting simulation - duration %.1fs", duration)

        while self.time < duration and self.running:
            if driver:
                driver(self, self.time)
            telemetry = self.step()
            if callback:
                callback(telemetry)

        self.running = False
        logger.info("Simulation complete. Sim time %.2fs, real time %.2fs",
                    self.time, time.time() - start_time)

    def get_stats(self) -> Dict:
        stats = self.tracker.get_stats()
        tangles = self.world.get_tangle_stats()
        stats.update({
            'elapsed_time': self.time,
            'active_tangles': tangles['count'],
            'locked_tangles': tangles['locked'],
            'max_wrap_deg': float(np.degrees(tangles['max_wrap'])),
            'total_capstan_friction': tangles['total_friction'],
        })
        return stats

    def get_recent_events(self, count: int = 10) -> List[Dict]:
        return list(reversed(self.event_log[-count:]))

    def reset(self):
        """Cold start: fresh world, empty word, strands rebuilt"""
        self.world.reset()
        self.tracker.reset()
        self.detector.reset()
        self.tracker.rope_slots.clear()
        self.ropes = []
        self.event_log = []
        self.time = 0.0
        self.tracker.start_time = 0.0
        self._build_strands()


def orbiting_driver(sim: TangleSimulation, t: float):
    """Swing each far end around the anchor at its own rate so the strands braid"""
    strands = sim.config['strands']
    anchor = np.asarray(strands['anchor'], dtype=np.float64)
    reach = strands['length'] * 0.8
    for slot in range(len(sim.ropes)):
        rate = 0.6 + 0.35 * slot
        phase = slot * 2 * np.pi / 3
        angle = -np.pi / 2 + 1.2 * np.sin(t * rate + phase)
        end = anchor + reach * np.array([np.cos(angle), np.sin(angle)])
        sim.set_endpoints(slot, end=end, end_height=6.0 * abs(np.sin(t * 3.0 + phase)))


def demo_orbiting_strands(duration: float = 20.0):
    print("\n" + "=" * 60)
    print("DEMO: THREE ORBITING STRANDS")
    print("=" * 60 + "\n")

    sim = TangleSimulation()
    sim.run(duration=duration, driver=orbiting_driver)

    stats = sim.get_stats()
    print(f"Crossings recorded: {stats['total_crossings']}")
    print(f"Braid word:         {stats['braid_word']}")
    print(f"Reduced word:       {stats['simplified_word']}")
    print(f"Writhe:             {stats['writhe']}")
    print(f"Complexity:         {stats['complexity']}")
    print(f"Active tangles:     {stats['active_tangles']} ({stats['locked_tangles']} locked)")
    print(f"Untangle sequence:  {sim.tracker.get_untangle_sequence()}")

    print("\nRecent events:")
    for event in sim.get_recent_events(8):
        print(f"  t={event['time']:6.2f}s  {event['description']}")


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=logging.INFO)

    config_path = Path(__file__).parent.parent / "config" / "world_params.yaml"
    if len(sys.argv) > 1 and sys.argv[1] == "demo":
        demo_orbiting_strands()
    else:
        sim = TangleSimulation(str(config_path) if config_path.exists() else None)
        sim.run(driver=orbiting_driver)
        print(sim.get_stats())
