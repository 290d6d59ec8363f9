"""
Evolutionary search engine.

Responsibility:
    Run a population-based stochastic search driven entirely by
    caller-supplied strategy functions (random generation, fitness,
    termination, next-generation production). The engine knows nothing
    about what an individual is.

Public contract:
    run(config: EvolutionConfig, rng=None, executor=None) -> RunState

Building blocks for common strategies:
    - Terminator: termination predicate (generation caps, stagnation,
      fitness target, wall-clock deadline).
    - GenerationBuilder: next-generation producer (elitism, crossover,
      mutation, fresh random individuals).
    - select_uniform / RankedSelector: parent selection.

Constraints:
    - All randomness flows through the numpy Generator passed to run()
      and exposed as RunState.rng. With a seeded generator and pure
      fitness, runs are bit-for-bit reproducible.
    - The caller must make ``terminate`` eventually return True.
      EvolutionConfig.generation_limit is the only built-in safety net.

Non-goals:
    - No persistence or replay of runs.
    - No multi-objective fitness.
"""

import logging
import math
import time
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

MAXIMIZE = 1
MINIMIZE = -1

Individual = Any


@dataclass(slots=True)
class PopulationMember:
    """One individual plus its evolutionary bookkeeping.

    Attributes:
        individual: The candidate solution.
        fitness: Memoized fitness, None until first evaluated.
        age: Number of generations this member has been part of.
    """

    individual: Individual
    fitness: Optional[float] = None
    age: int = 0


@dataclass(frozen=True)
class EvolutionConfig:
    """The strategy a run is driven by.

    Attributes:
        population_size: Number of random individuals in the first generation.
        random: ``random(rng) -> individual``. Also used for fresh random
                slots in later generations.
        fitness: ``fitness(individual) -> float``. Must be pure.
        terminate: ``terminate(state) -> bool``, asked after every
                   evaluated generation.
        generate: ``generate(state) -> list[PopulationMember]``, builds the
                  next generation from the current (sorted) one.
        fitness_sign: MAXIMIZE (higher wins) or MINIMIZE (lower wins).
        generation_limit: Optional hard ceiling on generations. The run
                          stops there even if ``terminate`` never fires.
    """

    population_size: int
    random: Callable[[np.random.Generator], Individual]
    fitness: Callable[[Individual], float]
    terminate: Callable[["RunState"], bool]
    generate: Callable[["RunState"], List[PopulationMember]]
    fitness_sign: int = MAXIMIZE
    generation_limit: Optional[int] = None


@dataclass
class RunState:
    """Mutable state of a run, handed to the strategy callbacks.

    Attributes:
        config: The strategy this run was started with.
        rng: The run's random generator.
        generation: Number of generations evaluated so far.
        population: Current population, sorted best first after evaluation.
        fitness: Best fitness of the current generation.
    """

    config: EvolutionConfig
    rng: np.random.Generator
    generation: int = 0
    population: List[PopulationMember] = field(default_factory=list)
    fitness: Optional[float] = None

    @property
    def best(self) -> PopulationMember:
        """The fittest member of the current generation."""
        return self.population[0]


def _validate(config: EvolutionConfig) -> None:
    """Raise ValueError if the configuration cannot drive a run."""
    if config.population_size <= 0:
        raise ValueError(
            f"population_size must be positive, got {config.population_size}."
        )
    if config.fitness_sign not in (MAXIMIZE, MINIMIZE):
        raise ValueError(
            f"fitness_sign must be {MAXIMIZE} or {MINIMIZE}, "
            f"got {config.fitness_sign}."
        )
    if config.generation_limit is not None and config.generation_limit <= 0:
        raise ValueError(
            f"generation_limit must be positive or None, "
            f"got {config.generation_limit}."
        )


def _evaluate(
    population: List[PopulationMember],
    fitness: Callable[[Individual], float],
    executor: Optional[Executor],
) -> int:
    """Fill in missing fitness values. Returns the number of evaluations."""
    pending = [m for m in population if m.fitness is None]

    if executor is None:
        for member in pending:
            member.fitness = fitness(member.individual)
    else:
        # map() yields in submission order, so assignment is deterministic
        results = executor.map(fitness, [m.individual for m in pending])
        for member, value in zip(pending, results):
            member.fitness = value

    for member in population:
        member.age += 1

    return len(pending)


def run(
    config: EvolutionConfig,
    rng: Optional[np.random.Generator] = None,
    executor: Optional[Executor] = None,
) -> RunState:
    """Run an evolutionary search until the strategy says to stop.

    Args:
        config: Strategy callbacks and run parameters.
        rng: Random generator used for every random decision of the run.
             A fresh unseeded generator is created if None.
        executor: Optional executor used to evaluate the fitness of a
                  generation concurrently. Ranking always happens after all
                  evaluations of the generation have completed.

    Returns:
        The final RunState. ``state.population[0]`` is the best member.

    Raises:
        ValueError: If the configuration is invalid.
    """
    _validate(config)

    if rng is None:
        rng = np.random.default_rng()

    state = RunState(config=config, rng=rng)
    state.population = [
        PopulationMember(config.random(rng)) for _ in range(config.population_size)
    ]
    sign = config.fitness_sign

    while True:
        state.generation += 1

        evaluated = _evaluate(state.population, config.fitness, executor)

        # list.sort is stable, including with reverse=True
        state.population.sort(key=lambda m: m.fitness * sign, reverse=True)
        state.fitness = state.population[0].fitness

        logger.debug(
            "Generation %d: best=%.6f, evaluated=%d, size=%d",
            state.generation, state.fitness, evaluated, len(state.population),
        )

        if config.terminate(state):
            break

        if (
            config.generation_limit is not None
            and state.generation >= config.generation_limit
        ):
            logger.warning(
                "Generation limit %d reached before termination; stopping.",
                config.generation_limit,
            )
            break

        state.population = config.generate(state)

    return state


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------

class Terminator:
    """Termination predicate combining the usual stopping rules.

    Checks, in order:
        1. Never stop before ``min_generations``.
        2. Always stop at ``max_generations``.
        3. Stop after ``max_no_improvement`` generations without the best
           fitness improving.
        4. Stop once ``fitness_target`` is beaten (exceeded when maximizing,
           undercut when minimizing).
        5. Stop once ``deadline`` seconds have elapsed since construction.

    The predicate keeps state between calls; use one instance per run.
    """

    def __init__(
        self,
        min_generations: int = 0,
        max_generations: Optional[int] = None,
        max_no_improvement: Optional[int] = None,
        fitness_target: Optional[float] = None,
        deadline: Optional[float] = None,
    ) -> None:
        self.min_generations = min_generations
        self.max_generations = max_generations
        self.max_no_improvement = max_no_improvement
        self.fitness_target = fitness_target
        self.deadline = deadline

        self._best: Optional[float] = None
        self._stagnant = 0
        self._started = time.perf_counter()

    def __call__(self, state: RunState) -> bool:
        if state.generation < self.min_generations:
            return False

        if self.max_generations is not None and state.generation >= self.max_generations:
            return True

        sign = state.config.fitness_sign

        if self.max_no_improvement:
            adjusted = state.fitness * sign
            if self._best is None or adjusted > self._best:
                self._best = adjusted
                self._stagnant = 0
            else:
                self._stagnant += 1
                if self._stagnant >= self.max_no_improvement:
                    return True

        if self.fitness_target is not None:
            if sign == MINIMIZE:
                if state.fitness < self.fitness_target:
                    return True
            elif state.fitness > self.fitness_target:
                return True

        if self.deadline is not None:
            if time.perf_counter() - self._started >= self.deadline:
                logger.info(
                    "Search deadline of %.3fs reached at generation %d.",
                    self.deadline, state.generation,
                )
                return True

        return False


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------

def select_uniform(state: RunState) -> PopulationMember:
    """Pick any member of the population with equal probability."""
    return state.population[int(state.rng.integers(len(state.population)))]


class RankedSelector:
    """Selection biased toward the front of the (sorted) population.

    With ``u`` uniform in [0, 1) the selected index is

        floor(N * (b - sqrt(b^2 - 4 (b - 1) u)) / (2 (b - 1)))

    The larger the bias ``b``, the more the choice favors fitter members.
    A bias of exactly 1 degenerates to uniform selection.
    """

    def __init__(self, bias: float) -> None:
        if bias < 1:
            raise ValueError(f"Selection bias must be >= 1, got {bias}.")
        self.bias = bias

    def index(self, size: int, u: float) -> int:
        """Map a uniform draw onto a population index."""
        b = self.bias
        if b == 1:
            return min(int(size * u), size - 1)
        offset = (b - math.sqrt(b * b - 4.0 * (b - 1) * u)) / (2.0 * (b - 1))
        return min(int(math.floor(size * offset)), size - 1)

    def __call__(self, state: RunState) -> PopulationMember:
        u = float(state.rng.random())
        return state.population[self.index(len(state.population), u)]


# ---------------------------------------------------------------------------
# Generation production
# ---------------------------------------------------------------------------

class GenerationBuilder:
    """Builds the next generation from the current, ranked one.

    Each generation is made of, in order:
        - ``fittest`` best members carried over unchanged (elitism);
        - ``cross`` children of ``crosser(state, a, b)``;
        - ``mutate`` children of ``mutator(state, a)``;
        - ``random`` fresh individuals from the run's random generator.

    Parents are chosen with ``select(state)``. The counts are used as given;
    reconciling their sum with the population size is up to the caller.
    """

    def __init__(
        self,
        fittest: int = 0,
        cross: int = 0,
        mutate: int = 0,
        random: int = 0,
        select: Callable[[RunState], PopulationMember] = select_uniform,
        crosser: Optional[Callable[[RunState, Individual, Individual], Individual]] = None,
        mutator: Optional[Callable[[RunState, Individual], Individual]] = None,
    ) -> None:
        if min(fittest, cross, mutate, random) < 0:
            raise ValueError(
                f"Generation counts must be non-negative, got fittest={fittest}, "
                f"cross={cross}, mutate={mutate}, random={random}."
            )
        if cross and crosser is None:
            raise ValueError("A crosser is required when cross > 0.")
        if mutate and mutator is None:
            raise ValueError("A mutator is required when mutate > 0.")

        self.fittest = fittest
        self.cross = cross
        self.mutate = mutate
        self.random = random
        self.select = select
        self.crosser = crosser
        self.mutator = mutator

    @property
    def size(self) -> int:
        """Number of members each produced generation holds."""
        return self.fittest + self.cross + self.mutate + self.random

    def __call__(self, state: RunState) -> List[PopulationMember]:
        population: List[PopulationMember] = list(state.population[: self.fittest])

        for _ in range(self.cross):
            a = self.select(state).individual
            b = self.select(state).individual
            population.append(PopulationMember(self.crosser(state, a, b)))

        for _ in range(self.mutate):
            parent = self.select(state).individual
            population.append(PopulationMember(self.mutator(state, parent)))

        for _ in range(self.random):
            population.append(PopulationMember(state.config.random(state.rng)))

        return population
