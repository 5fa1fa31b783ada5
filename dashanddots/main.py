from flask import Blueprint, current_app, jsonify

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Dash & Dots game server!'})


@main.route('/health')
def health():
    return jsonify({'ok': True})


@main.route('/api/games')
def list_games():
    registry = current_app.extensions['rooms'].registry
    return jsonify(registry.describe())
