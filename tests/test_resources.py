import simpy

from cycle_sim_resources import ResourcePool
from cycle_sim_types import ResourceCapacities, ResourceKind


def _pool(drill_rigs=1, loaders=2, charge_crews=1, support_crews=0):
    env = simpy.Environment()
    return env, ResourcePool(env, ResourceCapacities(drill_rigs, loaders, charge_crews, support_crews))


def test_waiting_requests_served_by_heading_index():
    env, pool = _pool()
    granted = []

    def user(idx, start, hold):
        yield env.timeout(start)
        alloc = yield from pool.acquire(ResourceKind.DRILL_RIG, idx)
        granted.append((idx, env.now, alloc.unit_name))
        yield env.timeout(hold)
        pool.release(alloc, busy_minutes=hold)

    env.process(user(2, 0, 5))
    env.process(user(1, 1, 10))
    env.process(user(0, 1, 10))
    env.run()

    assert granted == [(2, 0, "DRILL_RIG-1"), (0, 5, "DRILL_RIG-1"), (1, 15, "DRILL_RIG-1")]
    assert pool.busy_minutes[ResourceKind.DRILL_RIG] == 25


def test_same_minute_tie_goes_to_lower_heading_index():
    env, pool = _pool(loaders=1)
    granted = []

    def user(idx, hold):
        yield env.timeout(10)
        alloc = yield from pool.acquire(ResourceKind.LOADER, idx)
        granted.append((idx, env.now))
        yield env.timeout(hold)
        pool.release(alloc)

    # The higher index is scheduled first, so it resumes first at t=10.
    env.process(user(2, 30))
    env.process(user(1, 30))
    env.process(user(0, 30))
    env.run()

    assert granted == [(0, 10), (1, 40), (2, 70)]


def test_lowest_free_unit_is_assigned():
    env, pool = _pool()
    names = []

    def user(idx, start, hold):
        yield env.timeout(start)
        alloc = yield from pool.acquire(ResourceKind.LOADER, idx)
        names.append((idx, alloc.unit_name))
        yield env.timeout(hold)
        pool.release(alloc)

    env.process(user(1, 0, 30))
    env.process(user(0, 0, 10))
    env.process(user(2, 20, 5))
    env.run()

    assert names == [(0, "LOADER-1"), (1, "LOADER-2"), (2, "LOADER-1")]


def test_on_wait_called_only_when_blocked():
    env, pool = _pool()
    waits = []

    def user(idx):
        alloc = yield from pool.acquire(ResourceKind.DRILL_RIG, idx, on_wait=lambda k: waits.append((idx, env.now, k)))
        yield env.timeout(10)
        pool.release(alloc)

    env.process(user(1))
    env.process(user(0))
    env.run(until=1)
    assert waits == [(1, 0, ResourceKind.DRILL_RIG)]


def test_zero_capacity_kind_never_grants():
    env, pool = _pool(support_crews=0)
    waits = []
    got = []

    def user():
        alloc = yield from pool.acquire(ResourceKind.SUPPORT_CREW, 0, on_wait=waits.append)
        got.append(alloc)

    env.process(user())
    env.run(until=1000)
    assert waits == [ResourceKind.SUPPORT_CREW]
    assert got == []


def test_utilization_per_kind():
    env, pool = _pool()

    def user():
        alloc = yield from pool.acquire(ResourceKind.DRILL_RIG, 0)
        yield env.timeout(25)
        pool.release(alloc, busy_minutes=25)

    env.process(user())
    env.run()
    util = pool.utilization(50)
    assert util["drill_rig"] == 0.5
    assert util["loader"] == 0.0
    assert util["support_crew"] == 0.0
    assert set(util) == {"drill_rig", "loader", "charge_crew", "support_crew"}
