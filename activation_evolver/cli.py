"""
Headless evolution run.

Runs the full generation budget synchronously and prints one line per
generation followed by the leaderboard.

Usage:
    activation-evolver [options]
    python -m activation_evolver [options]

Options:
    --population N        Population size (default: 20)
    --generations N       Number of generations (default: 15)
    --mutation-rate R     Mutation probability (default: 0.3)
    --crossover-rate R    Crossover probability (default: 0.5)
    --elitism N           Elites carried over per generation (default: 3)
    --max-complexity N    Expression depth limit (default: 4)
    --dataset NAME        Dataset name (default: MNIST (Default))
    --config PATH         JSON config file; flags override its values
    --seed N              Random seed for reproducibility
    --checkpoint-dir DIR  Save a JSON checkpoint there when done
    --top N               Leaderboard entries to print (default: 10)
"""

import argparse
import logging
import sys

from .evolution.engine import EvolutionConfig
from .evolution.simulation import Simulation


# Flag name -> EvolutionConfig field
CONFIG_FLAGS = {
    'population': 'population_size',
    'generations': 'generations',
    'mutation_rate': 'mutation_rate',
    'crossover_rate': 'crossover_rate',
    'elitism': 'elitism',
    'max_complexity': 'max_complexity',
    'dataset': 'dataset',
}


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Evolve candidate activation functions'
    )
    parser.add_argument(
        '--population', type=int, default=None,
        help='Population size (default: 20)'
    )
    parser.add_argument(
        '--generations', type=int, default=None,
        help='Number of generations (default: 15)'
    )
    parser.add_argument(
        '--mutation-rate', type=float, default=None,
        help='Mutation probability (default: 0.3)'
    )
    parser.add_argument(
        '--crossover-rate', type=float, default=None,
        help='Crossover probability (default: 0.5)'
    )
    parser.add_argument(
        '--elitism', type=int, default=None,
        help='Elites carried over per generation (default: 3)'
    )
    parser.add_argument(
        '--max-complexity', type=int, default=None,
        help='Expression depth limit (default: 4)'
    )
    parser.add_argument(
        '--dataset', type=str, default=None,
        help='Dataset name (default: MNIST (Default))'
    )
    parser.add_argument(
        '--config', type=str, default=None,
        help='JSON config file; flags override its values'
    )
    parser.add_argument(
        '--seed', type=int, default=None,
        help='Random seed for reproducibility'
    )
    parser.add_argument(
        '--checkpoint-dir', type=str, default=None,
        help='Directory for the final checkpoint'
    )
    parser.add_argument(
        '--top', type=int, default=10,
        help='Leaderboard entries to print (default: 10)'
    )
    parser.add_argument(
        '--verbose', action='store_true',
        help='Enable debug logging'
    )
    return parser.parse_args(argv)


def build_config(args) -> EvolutionConfig:
    """
    Merge the config file (if any) with command-line overrides.

    Raises:
        ValueError: on unknown keys or out-of-range values
    """
    config = EvolutionConfig.load(args.config) if args.config else EvolutionConfig()
    overrides = {
        field: getattr(args, flag)
        for flag, field in CONFIG_FLAGS.items()
        if getattr(args, flag) is not None
    }
    config = config.with_updates(**overrides)
    config.validate()
    return config


def print_banner(config: EvolutionConfig):
    print("=" * 70)
    print("   ACTIVATION EVOLVER - Evolutionary Formula Search")
    print("=" * 70)
    print(f"   Population:     {config.population_size}")
    print(f"   Generations:    {config.generations}")
    print(f"   Mutation rate:  {config.mutation_rate}")
    print(f"   Crossover rate: {config.crossover_rate}")
    print(f"   Elitism:        {config.elitism}")
    print(f"   Max complexity: {config.max_complexity}")
    print(f"   Dataset:        {config.dataset}")
    print("=" * 70)


def print_leaderboard(simulation: Simulation, top: int):
    print("\nTop formulas:")
    for rank, candidate in enumerate(simulation.leaderboard.entries[:top], 1):
        print(
            f"  {rank:2d}. {candidate.expression:<40s} "
            f"score={candidate.score:7.4f}  acc={candidate.accuracy:.4f}  "
            f"loss={candidate.loss:.4f}  complexity={candidate.complexity}"
        )


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    try:
        config = build_config(args)
    except (OSError, ValueError, TypeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2

    print_banner(config)
    simulation = Simulation(config, seed=args.seed)

    simulation.start()
    while simulation.is_running:
        generation = simulation.tick()
        if generation is None:
            continue
        stats = simulation.history.stats[-1]
        print(
            f"Gen {generation.generation_number:3d}: "
            f"best={stats.best_score:7.4f}  avg={stats.avg_score:7.4f}  "
            f"best_acc={stats.best_accuracy:.4f}  unique={stats.unique_expressions}"
        )

    print_leaderboard(simulation, args.top)

    if args.checkpoint_dir:
        path = simulation.save_checkpoint(args.checkpoint_dir)
        print(f"\nCheckpoint saved: {path}")

    return 0


if __name__ == '__main__':
    sys.exit(main())
