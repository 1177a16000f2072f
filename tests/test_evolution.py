"""
Tests for the evolutionary formula engine.

Run with: python -m pytest tests/test_evolution.py -v
"""

import itertools
import random

import pytest

from activation_evolver.core.vocabulary import (
    DEFAULT_DATASET,
    FUNCTIONS,
    TERMINALS,
)
from activation_evolver.evolution import operators
from activation_evolver.evolution.expression import (
    BinaryOp,
    Call,
    ExpressionSyntaxError,
    Terminal,
    count_complexity,
    expression_depth,
    extract_subtrees,
    extract_tokens,
    is_well_formed,
    parse_expression,
    replace_token_at,
)
from activation_evolver.evolution.generator import generate_expression
from activation_evolver.evolution.candidate import Candidate
from activation_evolver.evolution.fitness import (
    INVALID_SCORE,
    create_random_candidate,
    evaluate_expression,
)
from activation_evolver.evolution.operators import (
    MAX_EXPRESSION_LENGTH,
    crossover,
    elitism_selection,
    mutate,
    tournament_selection,
)
from activation_evolver.evolution.engine import (
    EvolutionConfig,
    Generation,
    advance_generation,
    create_initial_population,
)
from activation_evolver.evolution.history import EvolutionHistory, Leaderboard


class ScriptedRandom:
    """Random source that replays fixed draws."""

    def __init__(self, values=(0.5,), picks=(0,)):
        self._values = itertools.cycle(values)
        self._picks = itertools.cycle(picks)

    def random(self):
        return next(self._values)

    def choice(self, seq):
        return seq[next(self._picks) % len(seq)]

    def randrange(self, n):
        return next(self._picks) % n


def make_candidate(expression, score, candidate_id=None):
    return Candidate(
        id=candidate_id or f"test_{expression}_{score}",
        expression=expression,
        accuracy=0.9,
        loss=0.2,
        complexity=count_complexity(expression),
        score=score,
        params={'a': 0.1, 'b': 0.2, 'c': 0.3},
    )


class TestExpression:
    """Tests for the expression model."""

    def test_render_nested_calls(self):
        tree = Call('sin', Call('cos', Terminal('x')))
        assert tree.render() == 'sin(cos(x))'
        assert tree.tokens() == ['sin', 'cos', 'x']
        assert expression_depth(tree) == 2

    def test_parse_round_trip(self):
        for text in ['sin(x)', 'tanh(abs(log(a)))', 'sin(x) + cos(b)', 'exp(x * a)']:
            assert parse_expression(text).render() == text

    def test_parse_binary_precedence(self):
        tree = parse_expression('a + b * x')
        assert isinstance(tree, BinaryOp)
        assert tree.op == '+'
        assert tree.right == BinaryOp('*', Terminal('b'), Terminal('x'))

    def test_render_keeps_grouping(self):
        tree = parse_expression('(a + b) * x')
        assert tree.render() == '(a + b) * x'

    def test_parse_rejects_malformed(self):
        for text in ['sin(x', 'sin(x))', 'foo(x)', 'sin()', '']:
            with pytest.raises(ExpressionSyntaxError):
                parse_expression(text)
        assert not is_well_formed('cos(x')
        assert is_well_formed('cos(x)')

    def test_extract_subtrees_ordered_by_opening(self):
        assert extract_subtrees('sin(cos(x))') == ['sin(cos(x))', 'cos(x)']
        assert extract_subtrees('sin(cos(x)) + tanh(a)') == [
            'sin(cos(x))', 'cos(x)', 'tanh(a)',
        ]

    def test_extract_subtrees_bare_terminal(self):
        assert extract_subtrees('a') == []
        assert extract_subtrees('x') == []

    def test_extract_subtrees_unbalanced_yields_nothing(self):
        assert extract_subtrees('sin(cos(x)') == []
        assert extract_subtrees('sin(x))') == []
        assert extract_subtrees(')sin(x)(') == []

    def test_extract_tokens(self):
        assert extract_tokens('tanh(sin(x) + a)') == ['tanh', 'sin', 'x', 'a']
        assert extract_tokens('') == []

    def test_replace_token_at_only_that_position(self):
        assert replace_token_at('sin(sin(x))', 1, 'cos') == 'sin(cos(x))'
        assert replace_token_at('sin(sin(x))', 0, 'abs') == 'abs(sin(x))'
        assert replace_token_at('exp(a) + a', 2, 'x') == 'exp(a) + x'

    def test_count_complexity(self):
        assert count_complexity('sin(x)') == 2
        assert count_complexity('a') == 1


class TestGenerator:
    """Tests for random expression generation."""

    def test_generated_expressions_are_valid(self):
        rng = random.Random(3)
        for max_depth in (1, 2, 4, 6):
            for _ in range(200):
                tree = generate_expression(max_depth, rng)
                text = tree.render()
                assert isinstance(tree, Call)
                assert '(' in text
                assert count_complexity(text) >= 2
                assert expression_depth(tree) <= max_depth
                assert parse_expression(text) == tree

    def test_depth_one_is_single_call(self):
        rng = random.Random(11)
        for _ in range(50):
            tree = generate_expression(1, rng)
            assert isinstance(tree.arg, Terminal)
            assert tree.func in FUNCTIONS
            assert tree.arg.name in TERMINALS

    def test_scripted_growth_reaches_depth_limit(self):
        # 0.5 never triggers the early stop, so the chain runs to max_depth
        tree = generate_expression(4, ScriptedRandom(values=(0.5,), picks=(0,)))
        assert tree.render() == 'sin(sin(sin(sin(x))))'

    def test_scripted_early_stop(self):
        tree = generate_expression(4, ScriptedRandom(values=(0.1,), picks=(1,)))
        assert tree.render() == 'cos(a)'


class TestFitness:
    """Tests for mock fitness evaluation."""

    def test_score_formula_default_dataset(self):
        candidate = evaluate_expression('sin(x)', DEFAULT_DATASET, ScriptedRandom((0.5,)))

        # accuracy = 0.85 + 0.07 - 0.01, loss = 0.09 * 2 + 0.05
        assert candidate.complexity == 2
        assert candidate.accuracy == pytest.approx(0.91, abs=1e-4)
        assert candidate.loss == pytest.approx(0.23, abs=1e-4)
        assert candidate.score == pytest.approx(0.91 * 1.5 - 0.23 * 0.8 - 0.02, abs=1e-4)
        assert candidate.score != INVALID_SCORE

    def test_custom_dataset_bonus(self):
        candidate = evaluate_expression('sin(x)', 'my_data.csv', ScriptedRandom((0.5,)))

        assert candidate.accuracy == pytest.approx(0.915, abs=1e-4)
        assert candidate.loss == pytest.approx(0.22, abs=1e-4)
        assert candidate.score == pytest.approx(0.915 * 1.5 - 0.22 * 0.8 - 0.02, abs=1e-4)

    def test_bare_terminal_is_penalized(self):
        rng = random.Random(0)
        for _ in range(20):
            candidate = evaluate_expression('a', DEFAULT_DATASET, rng)
            assert candidate.score == -1
            assert candidate.is_penalized

    def test_missing_variable_is_penalized(self):
        candidate = evaluate_expression('sin(cos(a))', DEFAULT_DATASET, random.Random(1))
        assert candidate.score == -1

    def test_missing_function_is_penalized(self):
        candidate = evaluate_expression('x', DEFAULT_DATASET, random.Random(1))
        assert candidate.score == -1

    def test_metrics_rounded_to_four_places(self):
        rng = random.Random(5)
        for _ in range(50):
            candidate = create_random_candidate(4, DEFAULT_DATASET, rng)
            for value in (candidate.accuracy, candidate.loss, candidate.score):
                assert round(value, 4) == value

    def test_params_in_unit_interval(self):
        candidate = evaluate_expression('tanh(x)', DEFAULT_DATASET, random.Random(2))
        assert set(candidate.params) == {'a', 'b', 'c'}
        assert all(0.0 <= v < 1.0 for v in candidate.params.values())

    def test_candidates_are_immutable(self):
        candidate = evaluate_expression('sin(x)')
        with pytest.raises(AttributeError):
            candidate.score = 5.0

    def test_ids_are_unique(self):
        ids = {create_random_candidate(3).id for _ in range(500)}
        assert len(ids) == 500

    def test_serialization(self):
        candidate = evaluate_expression('abs(sin(x))', 'custom.csv', random.Random(9))
        restored = Candidate.from_dict(candidate.to_dict())
        assert restored == candidate


class TestOperators:
    """Tests for selection, crossover and mutation."""

    @pytest.fixture
    def config(self):
        return EvolutionConfig()

    @pytest.fixture
    def sample_population(self):
        return [
            make_candidate('sin(x)', 0.1 * i, candidate_id=f'c{i}')
            for i in range(10)
        ]

    def test_tournament_returns_best_of_draws(self, sample_population):
        rng = ScriptedRandom(picks=(2, 7, 4))
        winner = tournament_selection(sample_population, rng=rng)
        assert winner.id == 'c7'

    def test_tournament_tie_keeps_first_draw(self):
        population = [make_candidate('sin(x)', 0.5, 'first'), make_candidate('cos(x)', 0.5, 'second')]
        winner = tournament_selection(population, rng=ScriptedRandom(picks=(1, 0, 0)))
        assert winner.id == 'second'

    def test_tournament_favors_fit(self, sample_population):
        rng = random.Random(0)
        winners = [tournament_selection(sample_population, rng=rng) for _ in range(300)]
        mean_score = sum(w.score for w in winners) / len(winners)
        assert mean_score > 0.45  # population mean

    def test_elitism_selection(self, sample_population):
        elites = elitism_selection(sample_population, 3)
        assert [e.id for e in elites] == ['c9', 'c8', 'c7']
        assert elites[0] is sample_population[9]

    def test_crossover_swaps_subtrees(self, config):
        parent1 = make_candidate('sin(cos(x))', 0.5, 'p1')
        parent2 = make_candidate('tanh(abs(a))', 0.5, 'p2')

        child = crossover(parent1, parent2, config, ScriptedRandom(picks=(-1,)))

        assert child.expression == 'sin(abs(a))'
        assert child.id.startswith('cross_')
        assert child.score == -1  # lost the input variable

    def test_crossover_replaces_first_occurrence(self, config):
        parent1 = make_candidate('cos(x) + sin(cos(x))', 0.5, 'p1')
        parent2 = make_candidate('abs(x)', 0.5, 'p2')

        # Picks the last 'cos(x)' but the first textual match is rewritten
        child = crossover(parent1, parent2, config, ScriptedRandom(picks=(-1,)))

        assert child.expression == 'abs(x) + sin(cos(x))'

    def test_crossover_fallback_on_bare_terminal(self, config):
        parent1 = make_candidate('a', -1, 'p1')
        parent2 = make_candidate('sin(x)', 0.5, 'p2')

        child = crossover(parent1, parent2, config, random.Random(4))

        assert child.id.startswith('rand_')
        assert '(' in child.expression
        assert child.complexity >= 2

    def test_crossover_fallback_on_long_child(self, config):
        long_expr = 'tanh(' * 9 + 'x' + ')' * 9
        assert len(long_expr) > MAX_EXPRESSION_LENGTH
        parent1 = make_candidate('sin(x)', 0.5, 'p1')
        parent2 = make_candidate(long_expr, 0.5, 'p2')

        child = crossover(parent1, parent2, config, ScriptedRandom(values=(0.5,), picks=(0,)))

        assert child.id.startswith('rand_')
        assert child.expression == 'sin(sin(sin(sin(x))))'
        assert len(child.expression) <= MAX_EXPRESSION_LENGTH

    def test_crossover_does_not_modify_parents(self, config):
        parent1 = make_candidate('sin(cos(x))', 0.5, 'p1')
        parent2 = make_candidate('tanh(abs(a))', 0.4, 'p2')
        crossover(parent1, parent2, config, random.Random(0))
        assert parent1.expression == 'sin(cos(x))'
        assert parent2.expression == 'tanh(abs(a))'

    def test_mutate_function_token_at_position(self, config):
        candidate = make_candidate('sin(sin(x))', 0.5, 'm')

        # position 1, first alternative to 'sin' is 'cos'
        mutated = mutate(candidate, config, ScriptedRandom(picks=(1, 0)))

        assert mutated.expression == 'sin(cos(x))'
        assert mutated.id.startswith('mut_')
        assert mutated.id != candidate.id

    def test_mutate_terminal_stays_terminal(self, config):
        candidate = make_candidate('exp(x)', 0.5, 'm')
        rng = random.Random(8)
        for _ in range(100):
            mutated = mutate(candidate, config, rng)
            tokens = extract_tokens(mutated.expression)
            assert len(tokens) == 2
            assert tokens[0] in FUNCTIONS
            assert tokens[1] in TERMINALS
            assert tokens != ['exp', 'x']

    def test_mutate_unknown_tokens_unchanged(self, config):
        candidate = make_candidate('foo(bar)', -1, 'm')
        mutated = mutate(candidate, config, random.Random(1))
        assert mutated.expression == 'foo(bar)'
        assert mutated.id != candidate.id

    def test_mutate_no_alternative_keeps_expression(self, config, monkeypatch):
        monkeypatch.setattr(operators, 'category_members', lambda category: ['sin'])
        candidate = make_candidate('sin(x)', 0.5, 'm')

        mutated = mutate(candidate, config, ScriptedRandom(values=(0.5,), picks=(0,)))

        assert mutated.expression == 'sin(x)'
        assert mutated.score == pytest.approx(1.161, abs=1e-4)

    def test_mutate_fallback_without_tokens(self, config):
        candidate = make_candidate('()', -1, 'm')
        mutated = mutate(candidate, config, random.Random(2))
        assert mutated.id.startswith('rand_')
        assert '(' in mutated.expression


class TestEngine:
    """Tests for generation transitions."""

    @pytest.fixture
    def config(self):
        return EvolutionConfig(
            population_size=20,
            generations=15,
            mutation_rate=0.3,
            crossover_rate=0.5,
            elitism=3,
            max_complexity=4,
            dataset='MNIST (Default)',
        )

    def test_initial_population(self, config):
        generation = create_initial_population(config, rng=random.Random(42))

        assert generation.generation_number == 1
        assert len(generation.population) == 20
        for candidate in generation.population:
            assert 2 <= candidate.complexity <= 2 * config.max_complexity
            assert '(' in candidate.expression

    def test_seed_is_reproducible(self, config):
        first = create_initial_population(config, seed=123)
        second = create_initial_population(config, seed=123)
        assert [c.expression for c in first.population] == [c.expression for c in second.population]
        assert [c.score for c in first.population] == [c.score for c in second.population]

    def test_end_to_end_fifteen_generations(self, config):
        rng = random.Random(42)
        generation = create_initial_population(config, rng)
        for _ in range(14):
            previous = generation
            generation = advance_generation(generation, config, rng)
            assert generation.generation_number == previous.generation_number + 1
            assert len(generation.population) == config.population_size

        assert generation.generation_number == 15
        assert len(generation.population) == 20

    def test_elites_survive_unchanged(self, config):
        rng = random.Random(7)
        current = create_initial_population(config, rng)
        ranked = sorted(current.population, key=lambda c: c.score, reverse=True)

        nxt = advance_generation(current, config, rng)

        next_by_id = {c.id: c for c in nxt.population}
        for elite in ranked[:config.elitism]:
            assert next_by_id[elite.id] == elite

    def test_invalid_candidates_always_penalized(self, config):
        rng = random.Random(99)
        generation = create_initial_population(config, rng)
        for _ in range(10):
            generation = advance_generation(generation, config, rng)
            for candidate in generation.population:
                if 'x' not in candidate.expression or '(' not in candidate.expression:
                    assert candidate.score == -1

    def test_elitism_equal_to_population(self):
        config = EvolutionConfig(population_size=5, elitism=5)
        current = create_initial_population(config, seed=1)
        nxt = advance_generation(current, config, random.Random(1))
        assert {c.id for c in nxt.population} == {c.id for c in current.population}

    def test_single_member_population(self):
        config = EvolutionConfig(population_size=1, elitism=0, crossover_rate=1.0)
        current = create_initial_population(config, seed=2)
        nxt = advance_generation(current, config, random.Random(2))
        assert len(nxt.population) == 1
        assert nxt.generation_number == 2

    def test_duplicate_ids_do_not_block_crossover_redraw(self):
        config = EvolutionConfig(population_size=4, elitism=0, crossover_rate=1.0)
        twin = make_candidate('sin(x)', 0.5, 'twin')
        current = Generation(1, (twin, twin, twin, twin))

        nxt = advance_generation(current, config, random.Random(3))

        assert len(nxt.population) == 4

    def test_input_generation_untouched(self, config):
        current = create_initial_population(config, seed=5)
        before = [c.to_dict() for c in current.population]
        advance_generation(current, config, random.Random(5))
        assert [c.to_dict() for c in current.population] == before

    def test_config_validation(self):
        EvolutionConfig().validate()
        bad_values = [
            {'population_size': 0},
            {'generations': 0},
            {'mutation_rate': 1.5},
            {'crossover_rate': -0.1},
            {'elitism': 30},
            {'max_complexity': 0},
            {'dataset': ''},
        ]
        for changes in bad_values:
            with pytest.raises(ValueError):
                EvolutionConfig(**changes).validate()

    def test_clones_are_rescored_copies(self):
        config = EvolutionConfig(population_size=8, elitism=0, crossover_rate=0.0, mutation_rate=0.0)
        current = create_initial_population(config, seed=11)
        parent_ids = {c.id for c in current.population}
        parent_expressions = {c.expression for c in current.population}

        nxt = advance_generation(current, config, random.Random(11))

        assert len(nxt.population) == 8
        for child in nxt.population:
            assert child.expression in parent_expressions
            assert child.id not in parent_ids
            assert child.id.startswith('clone_')

    def test_config_validation_rejects_wrong_types(self):
        bad_values = [
            {'population_size': 5.5},
            {'generations': 2.0},
            {'elitism': 1.5},
            {'max_complexity': True},
            {'mutation_rate': '0.3'},
            {'crossover_rate': None},
        ]
        for changes in bad_values:
            with pytest.raises(ValueError, match='must be'):
                EvolutionConfig(**changes).validate()

    def test_config_from_dict_rejects_unknown(self):
        with pytest.raises(ValueError, match='Unknown config keys'):
            EvolutionConfig.from_dict({'population': 10})

    def test_config_load(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{"population_size": 8, "dataset": "iris.csv"}')
        config = EvolutionConfig.load(path)
        assert config.population_size == 8
        assert config.dataset == 'iris.csv'
        assert config.generations == 15


class TestHistory:
    """Tests for history and leaderboard."""

    def test_record_generation_stats(self):
        generation = Generation(1, (
            make_candidate('sin(x)', 1.0, 'a1'),
            make_candidate('cos(x)', 0.5, 'a2'),
            make_candidate('a', -1.0, 'a3'),
        ))
        history = EvolutionHistory()
        stats = history.record_generation(generation)

        assert stats.best_score == 1.0
        assert stats.avg_score == pytest.approx(0.5 / 3)
        assert stats.min_score == -1.0
        assert stats.unique_expressions == 3
        assert stats.penalized_count == 1
        assert history.score_trajectory == [1.0]
        assert history.chart_points()[0]['name'] == 1

    def test_record_generation_must_be_consecutive(self):
        history = EvolutionHistory()
        with pytest.raises(ValueError):
            history.record_generation(Generation(2, (make_candidate('sin(x)', 1.0),)))

    def test_history_serialization(self):
        config = EvolutionConfig(population_size=6)
        rng = random.Random(0)
        history = EvolutionHistory()
        generation = create_initial_population(config, rng)
        history.record_generation(generation)
        history.record_generation(advance_generation(generation, config, rng))

        restored = EvolutionHistory.from_dict(history.to_dict())

        assert len(restored) == 2
        assert restored.latest == history.latest
        assert restored.stats == history.stats

    def test_leaderboard_dedups_and_keeps_best(self):
        board = Leaderboard()
        board.update([
            make_candidate('sin(x)', 0.3, 'low'),
            make_candidate('sin(x)', 0.9, 'high'),
            make_candidate('cos(x)', 0.5, 'other'),
        ])
        assert [c.id for c in board] == ['high', 'other']

    def test_leaderboard_capped(self):
        board = Leaderboard()
        board.update([make_candidate(f'sin(x) + {t}', i * 0.01, f'k{i}')
                      for i, t in enumerate(['a', 'b', 'c'] * 5)])
        board.update([make_candidate(f'cos({t})', i * 0.1, f'j{i}')
                      for i, t in enumerate(['a', 'b', 'c', 'x'])])
        assert len(board) <= 10

    def test_leaderboard_across_run(self):
        config = EvolutionConfig()
        rng = random.Random(21)
        board = Leaderboard()
        seen = []

        generation = create_initial_population(config, rng)
        for _ in range(15):
            seen.extend(generation.population)
            board.update(generation.population)

            expressions = [c.expression for c in board]
            assert len(board) <= 10
            assert len(set(expressions)) == len(expressions)
            if len(board) == 10:
                floor = min(c.score for c in board)
                for candidate in seen:
                    if candidate.expression not in expressions:
                        assert candidate.score <= floor

            generation = advance_generation(generation, config, rng)
