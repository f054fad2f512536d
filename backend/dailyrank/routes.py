from flask import Blueprint, jsonify, current_app
from dailyrank import dates

main = Blueprint('main', __name__)

def _now():
    return current_app.extensions['rank_clock']()

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the daily leaderboard server!', 'date': dates.today(_now())})

@main.route('/api/current_date')
def current_date():
    # Clients align their "today" with the server's UTC+8 day
    return jsonify(dates.describe(_now()))
