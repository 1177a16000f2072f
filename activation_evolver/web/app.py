"""
Flask JSON API for Activation Evolver.

Exposes one Simulation to a front end: controls (start, pause, reset, step),
configuration, dataset selection, and read access to the population,
history, leaderboard and event log.
"""

from flask import Flask, jsonify, request

from ..core.vocabulary import SIMULATION_TICK_SECONDS
from ..evolution.expression import ExpressionSyntaxError, parse_expression
from ..evolution.fitness import evaluate_expression
from ..evolution.simulation import Simulation, SimulationTimer


def create_app(simulation=None, tick_interval: float = SIMULATION_TICK_SECONDS):
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Current state
    state = {
        'simulation': simulation or Simulation(),
    }
    state['timer'] = SimulationTimer(state['simulation'], interval=tick_interval)

    def _sim() -> Simulation:
        return state['simulation']

    @app.route('/api/state')
    def api_state():
        """Status, config, current population and leaderboard."""
        return jsonify(_sim().snapshot())

    @app.route('/api/history')
    def api_history():
        """Per-generation chart data."""
        sim = _sim()
        return jsonify({
            'generations': len(sim.history),
            'points': sim.history.chart_points(),
            'stats': [s.to_dict() for s in sim.history.stats],
        })

    @app.route('/api/leaderboard')
    def api_leaderboard():
        return jsonify({'leaderboard': _sim().leaderboard.to_list()})

    @app.route('/api/logs')
    def api_logs():
        return jsonify({'logs': _sim().log_entries()})

    @app.route('/api/start', methods=['POST'])
    def api_start():
        """Start or resume; ticks then run on the timer."""
        _sim().start()
        state['timer'].start()
        return jsonify(_sim().snapshot())

    @app.route('/api/pause', methods=['POST'])
    def api_pause():
        state['timer'].cancel()
        _sim().pause()
        return jsonify(_sim().snapshot())

    @app.route('/api/reset', methods=['POST'])
    def api_reset():
        state['timer'].cancel()
        _sim().reset()
        return jsonify(_sim().snapshot())

    @app.route('/api/step', methods=['POST'])
    def api_step():
        """Advance exactly one generation, even while paused."""
        generation = _sim().step()
        if generation is None:
            return jsonify({'error': 'Generation limit reached'}), 409
        return jsonify(generation.to_dict())

    @app.route('/api/config', methods=['GET', 'PUT'])
    def api_config():
        """Read or update the configuration."""
        sim = _sim()
        if request.method == 'GET':
            return jsonify(sim.config.to_dict())

        changes = request.get_json(silent=True)
        if not isinstance(changes, dict):
            return jsonify({'error': 'Expected a JSON object'}), 400
        try:
            config = sim.update_config(**changes)
        except (ValueError, TypeError) as e:
            return jsonify({'error': str(e)}), 400
        if not sim.is_running:
            state['timer'].cancel()
        return jsonify(config.to_dict())

    @app.route('/api/dataset', methods=['POST'])
    def api_dataset():
        """Select a dataset by file name."""
        data = request.get_json(silent=True) or {}
        name = data.get('name')
        if not isinstance(name, str) or not name:
            return jsonify({'error': 'Dataset name required'}), 400
        config = _sim().load_dataset(name)
        if not _sim().is_running:
            state['timer'].cancel()
        return jsonify(config.to_dict())

    @app.route('/api/evaluate', methods=['POST'])
    def api_evaluate():
        """Score a single hand-written expression."""
        data = request.get_json(silent=True) or {}
        expression = data.get('expression')
        if not isinstance(expression, str) or not expression:
            return jsonify({'error': 'Expression required'}), 400
        try:
            tree = parse_expression(expression)
        except ExpressionSyntaxError as e:
            return jsonify({'error': str(e)}), 400

        dataset = data.get('dataset', _sim().config.dataset)
        candidate = evaluate_expression(tree.render(), dataset)
        return jsonify(candidate.to_dict())

    return app


def main():
    """Run the Flask development server."""
    app = create_app()
    print("\n" + "=" * 60)
    print("Activation Evolver - Evolutionary Formula Search")
    print("=" * 60)
    print("\nStarting API at http://localhost:5000/api/state")
    print("Press Ctrl+C to stop\n")
    app.run(debug=True, port=5000, use_reloader=False)


if __name__ == '__main__':
    main()
