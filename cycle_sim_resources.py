# cycle_sim_resources.py
from __future__ import annotations
from bisect import insort
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple
import simpy

from cycle_sim_types import ResourceCapacities, ResourceKind


@dataclass
class Allocation:
    kind: ResourceKind
    unit: int
    request: simpy.Event
    start: float

    @property
    def unit_name(self) -> str:
        return f"{self.kind.name}-{self.unit + 1}"


class ResourcePool:
    """
    Shared crews and equipment, one simpy.PriorityResource per kind.

    Requests are not handed to simpy when they are made. They collect until
    nothing else is due at the current instant, then an allocation pass
    submits them in (request time, heading index) order, so a lower heading
    index wins a same-minute tie whatever order the processes resumed in.
    Waiting requests keep that order in the PriorityResource queue. A granted
    request is bound to the lowest free unit index of its kind. Kinds with
    zero capacity have no simpy resource; their requests are never granted.
    """

    def __init__(self, env: simpy.Environment, capacities: ResourceCapacities):
        self.env = env
        self.capacity: Dict[ResourceKind, int] = {kind: int(capacities.get(kind)) for kind in ResourceKind}
        self._resources: Dict[ResourceKind, simpy.PriorityResource] = {
            kind: simpy.PriorityResource(env, capacity=n)
            for kind, n in self.capacity.items() if n > 0
        }
        self._free_units: Dict[ResourceKind, List[int]] = {
            kind: list(range(n)) for kind, n in self.capacity.items()
        }
        self.busy_minutes: Dict[ResourceKind, float] = {kind: 0.0 for kind in ResourceKind}
        # (kind, request time, heading index, grant event, on_wait)
        self._pending: List[Tuple] = []
        self._pass_scheduled = False

    def request(self, kind: ResourceKind, heading_index: int,
                on_wait: Optional[Callable[[ResourceKind], None]] = None) -> simpy.Event:
        """Event that fires with the granted simpy request once a unit is assigned."""
        granted = self.env.event()
        if kind not in self._resources:
            if on_wait is not None:
                on_wait(kind)
            return granted
        self._pending.append((kind, self.env.now, heading_index, granted, on_wait))
        if not self._pass_scheduled:
            self._pass_scheduled = True
            self.env.process(self._allocation_pass())
        return granted

    def _allocation_pass(self):
        # Let every process due at this instant file its request first.
        while self.env.peek() == self.env.now:
            yield self.env.timeout(0)
        self._pass_scheduled = False

        pending = sorted(self._pending, key=lambda p: (p[1], p[2]))
        self._pending = []
        for kind, requested_at, heading_index, granted, on_wait in pending:
            req = self._resources[kind].request(priority=(requested_at, heading_index))
            if not req.triggered and on_wait is not None:
                on_wait(kind)
            req.callbacks.append(lambda ev, g=granted: g.succeed(ev))

    def acquire(self, kind: ResourceKind, heading_index: int,
                on_wait: Optional[Callable[[ResourceKind], None]] = None):
        """Generator: wait for one unit of ``kind`` and return its Allocation."""
        req = yield self.request(kind, heading_index, on_wait)
        unit = self._free_units[kind].pop(0)
        return Allocation(kind=kind, unit=unit, request=req, start=self.env.now)

    def release(self, alloc: Allocation, busy_minutes: float = 0.0) -> None:
        self._resources[alloc.kind].release(alloc.request)
        insort(self._free_units[alloc.kind], alloc.unit)
        self.busy_minutes[alloc.kind] += busy_minutes

    def utilization(self, sim_minutes: float) -> Dict[str, float]:
        out = {}
        for kind in ResourceKind:
            cap = self.capacity[kind]
            if cap <= 0 or sim_minutes <= 0:
                out[kind.value] = 0.0
            else:
                out[kind.value] = min(1.0, max(0.0, self.busy_minutes[kind] / (cap * sim_minutes)))
        return out
