# cycle_sim_data_ingest.py
# Boundary adapter: external scenario payloads (UI forms, legacy shapes) -> Scenario

from typing import Any, Dict, List, Optional, Tuple
import math

from cycle_sim_config import default_scenario
from cycle_sim_errors import ScenarioAdapterError
from cycle_sim_types import BlastPolicy, ResourceCapacities, Scenario, ShiftConfig, StageDurations

_SHIFT_BLOCKS = ("shift", "shifts", "shiftConfig")
_DURATION_BLOCKS = ("durations", "roundDurations", "cycle", "timing")

# field -> alias paths, each path a tuple of nested keys
_ALIASES: Dict[str, List[Tuple[str, ...]]] = {
    "sim_days": [("sim_days",), ("simDays",), ("days",), ("simulationDays",)],
    "tick_minutes": [("tick_minutes",), ("tickMin",), ("dtMin",), ("timeStepMin",), ("stepMin",)],
    "headings": [("headings",), ("numHeadings",), ("activeHeadings",)],
    "metres_per_round": [("metres_per_round",), ("metresPerRound",), ("advancePerRound",),
                         ("advancePerRoundM",), ("advanceM",), ("mPerRound",)],
    "workable_minutes": [(b, k) for b in _SHIFT_BLOCKS for k in ("shiftDurationMin", "durationMin", "workableMin")]
                        + [("shiftDurationMin",), ("shiftMin",), ("workable_minutes",)],
    "scheduled_minutes": [(b, "scheduledShiftMin") for b in _SHIFT_BLOCKS]
                         + [("scheduledShiftMin",), ("shiftScheduledMin",), ("scheduled_minutes",)],
    "shifts_per_day": [(b, "shiftsPerDay") for b in _SHIFT_BLOCKS] + [("shiftsPerDay",), ("shifts_per_day",)],
    "blast_timing": [(b, "blastTiming") for b in _SHIFT_BLOCKS]
                    + [("blastTiming",), ("blastMode",), ("blasting",), ("policy",), ("blast_policy",)],
    "reentry_minutes": [("reEntryDelayMin",), ("reentryMin",), ("reentry_minutes",)],
    "jumbo_bolting": [("support", "jumboBolting"), ("jumboBolting",), ("supportConfig", "jumboBolting"),
                      ("jumbo_bolting",)],
    "drill_rigs": [("resources", "drillRigs"), ("resources", "drill_rigs"), ("drillRigs",)],
    "loaders": [("resources", "lhds"), ("resources", "loaders"), ("lhds",), ("loaders",)],
    "charge_crews": [("resources", "blastCrews"), ("resources", "chargeCrews"), ("resources", "charge_crews"),
                     ("blastCrews",), ("chargeCrews",)],
    "support_crews": [("resources", "supportCrews"), ("resources", "support_crews"), ("supportCrews",)],
}
for _stage in ("drill", "charge", "muck", "support"):
    _ALIASES[_stage] = ([(b, _stage) for b in _DURATION_BLOCKS]
                        + [(_stage,), (f"{_stage}Min",), (f"{_stage}Minutes",), (f"{_stage}TimeMin",)])

_BLAST_VALUES = {
    "midshift": BlastPolicy.IMMEDIATE,
    "immediate": BlastPolicy.IMMEDIATE,
    "endofshift": BlastPolicy.END_OF_SHIFT,
    "end_of_shift": BlastPolicy.END_OF_SHIFT,
    "end_of_shift_only": BlastPolicy.END_OF_SHIFT,
    "end": BlastPolicy.END_OF_SHIFT,
    "true": BlastPolicy.IMMEDIATE,
    "false": BlastPolicy.END_OF_SHIFT,
}

# Explicit stage ids accepted in a "stages" list; blast entries are instantaneous.
_STAGE_IDS = {"DRILL": "drill", "CHARGE": "charge", "MUCK": "muck", "SUPPORT": "support"}
_BLAST_STAGE_IDS = {"BLAST"}


def _lookup(raw: Dict[str, Any], path: Tuple[str, ...]):
    cur: Any = raw
    for key in path:
        if not isinstance(cur, dict) or key not in cur:
            return None
        cur = cur[key]
    return cur


def _to_number(field: str, val: Any):
    """Coerce a payload value to int/float; None when absent or blank."""
    # A nested block (e.g. support: {jumboBolting: ...}) is not a value.
    if val is None or isinstance(val, dict):
        return None
    if isinstance(val, bool):
        raise ScenarioAdapterError(field, f"expected a number, got {val!r}")
    if isinstance(val, (int, float)):
        if isinstance(val, float) and not math.isfinite(val):
            raise ScenarioAdapterError(field, f"expected a finite number, got {val!r}")
        return int(val) if isinstance(val, float) and val.is_integer() else val
    val_str = str(val).strip()
    if val_str.lower() in ('none', 'nan', ''):
        return None
    try:
        num = float(val_str)
    except ValueError:
        raise ScenarioAdapterError(field, f"expected a number, got {val!r}") from None
    if not math.isfinite(num):
        raise ScenarioAdapterError(field, f"expected a finite number, got {val!r}")
    return int(num) if num.is_integer() else num


def _to_bool(field: str, val: Any) -> Optional[bool]:
    if val is None or isinstance(val, bool):
        return val
    val_lower = str(val).strip().lower()
    if val_lower in ('true', 'yes', 'y', '1'):
        return True
    if val_lower in ('false', 'no', 'n', '0'):
        return False
    raise ScenarioAdapterError(field, f"expected true/false, got {val!r}")


def _to_blast_policy(val: Any) -> Optional[BlastPolicy]:
    if val is None:
        return None
    if isinstance(val, BlastPolicy):
        return val
    if isinstance(val, bool):
        # Legacy checkbox: ticked means "blast as soon as ready".
        return BlastPolicy.IMMEDIATE if val else BlastPolicy.END_OF_SHIFT
    key = str(val).strip().lower()
    if key not in _BLAST_VALUES:
        raise ScenarioAdapterError("blast_timing", f"unrecognised blast timing {val!r}")
    return _BLAST_VALUES[key]


def _pick(raw: Dict[str, Any], field: str, convert):
    """First value found under any alias; conflicting aliases raise."""
    found = []
    for path in _ALIASES[field]:
        val = convert(_lookup(raw, path))
        if val is not None:
            found.append((".".join(path), val))
    if not found:
        return None
    first_path, first = found[0]
    for path, val in found[1:]:
        if val != first:
            raise ScenarioAdapterError(field, f"'{first_path}'={first!r} conflicts with '{path}'={val!r}")
    return first


def _stage_list_durations(stages: Any) -> Dict[str, Any]:
    if not isinstance(stages, list):
        raise ScenarioAdapterError("stages", "expected a list of {id, durationMin} entries")
    out: Dict[str, Any] = {}
    for i, entry in enumerate(stages):
        if not isinstance(entry, dict):
            raise ScenarioAdapterError(f"stages[{i}]", "expected an object")
        stage_id = str(entry.get("id", "")).strip().upper()
        if stage_id in _BLAST_STAGE_IDS or entry.get("isBlast") is True:
            continue
        if stage_id not in _STAGE_IDS:
            raise ScenarioAdapterError(f"stages[{i}].id", f"unknown stage id {entry.get('id')!r}")
        name = _STAGE_IDS[stage_id]
        if name in out:
            raise ScenarioAdapterError(f"stages[{i}].id", f"duplicate stage id {stage_id}")
        out[name] = _to_number(f"stages[{i}].durationMin", entry.get("durationMin"))
    return out


def normalize_scenario(raw: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> Scenario:
    """
    Translate an external scenario dict into a strict Scenario.

    Missing fields take the default scenario's values. Two aliases of the
    same field carrying different values raise ScenarioAdapterError.
    ``options["hoursPerShift"]`` (legacy run option) sets the scheduled shift
    length and wins over any value in the payload.
    """
    if not isinstance(raw, dict):
        raise ScenarioAdapterError("scenario", f"expected an object, got {type(raw).__name__}")
    options = options or {}
    base = default_scenario()

    def num(field):
        return _pick(raw, field, lambda v: _to_number(field, v))

    headings = num("headings")
    headings = base.headings if headings is None else headings

    durations = {name: num(name) for name in ("drill", "charge", "muck", "support")}
    if "stages" in raw:
        for name, val in _stage_list_durations(raw["stages"]).items():
            if durations[name] is not None and durations[name] != val:
                raise ScenarioAdapterError(name, f"stages list says {val!r}, payload says {durations[name]!r}")
            durations[name] = val
    base_d = base.durations
    durations = StageDurations(
        drill=base_d.drill if durations["drill"] is None else durations["drill"],
        charge=base_d.charge if durations["charge"] is None else durations["charge"],
        muck=base_d.muck if durations["muck"] is None else durations["muck"],
        support=0 if durations["support"] is None else durations["support"],
    )

    workable = num("workable_minutes")
    if workable is None:
        hours = _to_number("hoursPerShift", raw.get("hoursPerShift"))
        workable = hours * 60 if hours is not None else base.shift.workable_minutes
    hours_opt = _to_number("options.hoursPerShift", options.get("hoursPerShift"))
    if hours_opt is not None and hours_opt > 0:
        scheduled = _to_number("options.hoursPerShift", hours_opt * 60)
    else:
        scheduled = num("scheduled_minutes")
        scheduled = workable if scheduled is None else scheduled

    policy = _pick(raw, "blast_timing", _to_blast_policy)
    shift = ShiftConfig(
        workable_minutes=workable,
        scheduled_minutes=scheduled,
        blast_policy=base.shift.blast_policy if policy is None else policy,
        shifts_per_day=num("shifts_per_day"),
    )

    caps = {name: num(name) for name in ("drill_rigs", "loaders", "charge_crews", "support_crews")}
    resources = None
    if any(v is not None for v in caps.values()):
        defaults = ResourceCapacities.defaults_for(headings)
        resources = ResourceCapacities(**{
            name: getattr(defaults, name) if v is None else v for name, v in caps.items()
        })

    sim_days = num("sim_days")
    tick = num("tick_minutes")
    mpr = num("metres_per_round")
    reentry = num("reentry_minutes")
    jumbo = _pick(raw, "jumbo_bolting", lambda v: _to_bool("jumbo_bolting", v))
    name = raw.get("name")

    return Scenario(
        name=str(name) if name else base.name,
        sim_days=base.sim_days if sim_days is None else sim_days,
        tick_minutes=base.tick_minutes if tick is None else tick,
        headings=headings,
        metres_per_round=base.metres_per_round if mpr is None else mpr,
        shift=shift,
        durations=durations,
        resources=resources,
        jumbo_bolting=bool(jumbo),
        reentry_minutes=base.reentry_minutes if reentry is None else reentry,
    )
