"""
Option Structs
==============
Explicit configuration dataclasses for every component of the layout engine.

Why is this file needed?
------------------------
1. Validation: External collaborators hand us loosely typed option bags
   (camelCase dictionaries). They are converted here once and validated at the
   boundary, so the solvers can trust their inputs.
2. Defaults: Every recognised key is enumerated with its default value in one
   place.

Classes:
    BarnesHutOptions: Repulsion/spring/gravity constants of the force model.
    Wind: Uniform force applied to every free node.
    StabilizationOptions: Iteration cap, progress interval and convergence test.
    PhysicsOptions: The complete physics configuration.
    HierarchicalOptions: Layered layout settings.
    LayoutOptions: Initial positioning settings.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
import logging
from typing import Any, Mapping, Optional, TypeVar

from netlayout.utils import camel_to_snake

logger = logging.getLogger(__name__)

T = TypeVar("T")

DIRECTIONS = ("UD", "DU", "LR", "RL")
SHAKE_TOWARDS = ("roots", "leaves")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_number(name: str, value: Any) -> None:
    if not _is_number(value):
        raise ValueError(f"Option '{name}' must be a number, got {value!r}.")


def _require_int(name: str, value: Any, minimum: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise ValueError(f"Option '{name}' must be an integer >= {minimum}, got {value!r}.")


def _from_mapping(cls: type[T], data: Mapping[str, Any], base: Optional[T] = None) -> T:
    """
    Build a dataclass instance from a camelCase (or snake_case) mapping.

    Nested dataclass fields accept nested mappings and are merged into the
    corresponding value of `base`.

    Raises:
        ValueError: On an unknown key or a value rejected by validation.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Expected a mapping for {cls.__name__}, got {type(data).__name__}.")

    current = base if base is not None else cls()
    fields = {f.name: f for f in dataclasses.fields(cls)}
    changes: dict[str, Any] = {}

    for key, value in data.items():
        name = camel_to_snake(key)
        if name not in fields:
            raise ValueError(f"Unknown option '{key}' for {cls.__name__}.")

        existing = getattr(current, name)
        if dataclasses.is_dataclass(existing) and isinstance(value, Mapping):
            changes[name] = _from_mapping(type(existing), value, existing)
        elif dataclasses.is_dataclass(existing) and not isinstance(value, type(existing)):
            raise ValueError(f"Option '{key}' must be a mapping, got {value!r}.")
        else:
            changes[name] = value

    return dataclasses.replace(current, **changes)


@dataclass(frozen=True)
class BarnesHutOptions:
    theta: float = 0.5
    gravitational_constant: float = -2000.0
    central_gravity: float = 0.3
    spring_length: float = 95.0
    spring_constant: float = 0.04
    damping: float = 0.09

    def __post_init__(self) -> None:
        for name in ("theta", "gravitational_constant", "central_gravity",
                     "spring_length", "spring_constant", "damping"):
            _require_number(name, getattr(self, name))
        if self.theta <= 0:
            raise ValueError(f"Option 'theta' must be > 0, got {self.theta}.")
        if self.central_gravity < 0:
            raise ValueError(f"Option 'centralGravity' must be >= 0, got {self.central_gravity}.")
        if self.spring_length < 0 or self.spring_constant < 0:
            raise ValueError("Options 'springLength' and 'springConstant' must be >= 0.")
        if not 0.0 <= self.damping <= 1.0:
            raise ValueError(f"Option 'damping' must be within [0, 1], got {self.damping}.")


@dataclass(frozen=True)
class Wind:
    x: float = 0.0
    y: float = 0.0

    def __post_init__(self) -> None:
        _require_number("wind.x", self.x)
        _require_number("wind.y", self.y)


@dataclass(frozen=True)
class StabilizationOptions:
    """
    Stabilization run settings.

    `epsilon` is the largest per-node displacement (per tick) still counted as
    "at rest". When left as None it is derived from the physics options as
    `min_velocity * timestep`.

    `settle_iterations` is the number of extra ticks a run still moving at
    `iterations` may take before it times out (0 disables settling).
    """
    enabled: bool = True
    iterations: int = 1000
    update_interval: int = 50
    stable_ticks: int = 3
    epsilon: Optional[float] = None
    settle_iterations: int = 5000

    def __post_init__(self) -> None:
        _require_int("stabilization.iterations", self.iterations, 0)
        _require_int("stabilization.updateInterval", self.update_interval, 1)
        _require_int("stabilization.settleIterations", self.settle_iterations, 0)
        _require_int("stabilization.stableTicks", self.stable_ticks, 1)
        if self.epsilon is not None:
            _require_number("stabilization.epsilon", self.epsilon)
            if self.epsilon <= 0:
                raise ValueError(f"Option 'stabilization.epsilon' must be > 0, got {self.epsilon}.")


@dataclass(frozen=True)
class PhysicsOptions:
    """Complete physics configuration. Defaults follow the classic Barnes-Hut setup."""
    enabled: bool = True
    barnes_hut: BarnesHutOptions = field(default_factory=BarnesHutOptions)
    wind: Wind = field(default_factory=Wind)
    max_velocity: float = 50.0
    min_velocity: float = 0.1
    timestep: float = 0.5
    stabilization: StabilizationOptions = field(default_factory=StabilizationOptions)

    def __post_init__(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ValueError(f"Option 'physics.enabled' must be a bool, got {self.enabled!r}.")
        for name in ("max_velocity", "min_velocity", "timestep"):
            _require_number(name, getattr(self, name))
        if self.max_velocity <= 0 or self.min_velocity < 0 or self.timestep <= 0:
            raise ValueError("Options 'maxVelocity' and 'timestep' must be > 0, 'minVelocity' >= 0.")

    @property
    def epsilon(self) -> float:
        """Displacement threshold used by the convergence test."""
        if self.stabilization.epsilon is not None:
            return self.stabilization.epsilon
        return self.min_velocity * self.timestep

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional[PhysicsOptions] = None) -> PhysicsOptions:
        """
        Convert a physics option bag such as
        `{"barnesHut": {"theta": 0.8}, "wind": {"x": 10}, "stabilization": {"iterations": 10}}`.

        A top-level `damping` key is accepted as an alias of `barnesHut.damping`.
        """
        data = dict(data)
        damping = data.pop("damping", None)
        options = _from_mapping(cls, data, base)
        if damping is not None:
            options = dataclasses.replace(
                options, barnes_hut=dataclasses.replace(options.barnes_hut, damping=damping)
            )
        return options


@dataclass(frozen=True)
class HierarchicalOptions:
    enabled: bool = False
    level_separation: float = 150.0
    node_spacing: float = 100.0
    direction: str = "UD"
    shake_towards: str = "roots"

    def __post_init__(self) -> None:
        if self.direction not in DIRECTIONS:
            raise ValueError(f"Option 'hierarchical.direction' must be one of {DIRECTIONS}, got {self.direction!r}.")
        if self.shake_towards not in SHAKE_TOWARDS:
            raise ValueError(
                f"Option 'hierarchical.shakeTowards' must be one of {SHAKE_TOWARDS}, got {self.shake_towards!r}."
            )
        _require_number("hierarchical.levelSeparation", self.level_separation)
        _require_number("hierarchical.nodeSpacing", self.node_spacing)

    @property
    def is_vertical(self) -> bool:
        return self.direction in ("UD", "DU")

    @property
    def is_inverted(self) -> bool:
        return self.direction in ("DU", "RL")


@dataclass(frozen=True)
class LayoutOptions:
    random_seed: Optional[int] = None
    improved_layout: bool = True
    cluster_threshold: int = 150
    hierarchical: HierarchicalOptions = field(default_factory=HierarchicalOptions)

    def __post_init__(self) -> None:
        if self.random_seed is not None:
            _require_int("layout.randomSeed", self.random_seed, 0)
        _require_int("layout.clusterThreshold", self.cluster_threshold, 1)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], base: Optional[LayoutOptions] = None) -> LayoutOptions:
        data = dict(data)
        # {"hierarchical": True} is shorthand for {"hierarchical": {"enabled": True}}
        if isinstance(data.get("hierarchical"), bool):
            data["hierarchical"] = {"enabled": data["hierarchical"]}
        return _from_mapping(cls, data, base)
