import logging
from decimal import Decimal

from flask import Flask, Response, jsonify, render_template, request
from flask_socketio import SocketIO

from personal_budget.backend.errors import MonthNotFound, StoreNotReady, ValidationRejected
from personal_budget.backend.models import CATEGORIES, format_currency

logger = logging.getLogger(__name__)

socketio = SocketIO(cors_allowed_origins="*")


def to_json(value):
    """Convert Decimals (and containers of them) for jsonify."""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value


def create_app(manager):
    """Build the Flask app around an initialized BudgetManager."""
    app = Flask(__name__)
    app.extensions['budget_manager'] = manager
    app.jinja_env.filters['currency'] = format_currency
    socketio.init_app(app)

    def notify(kind, action):
        socketio.emit('data_updated', {'type': kind, 'action': action})

    @app.errorhandler(ValidationRejected)
    def handle_rejected(e):
        logger.info("Rejected request: %s", e)
        return jsonify({'success': False, 'error': str(e)}), 400

    @app.errorhandler(StoreNotReady)
    def handle_not_ready(e):
        return jsonify({'success': False, 'error': str(e)}), 503

    @app.errorhandler(MonthNotFound)
    def handle_missing_month(e):
        return jsonify({'success': False, 'error': str(e)}), 404

    @app.route('/')
    def index():
        month = manager.current_month
        return render_template(
            'index.html',
            summary=manager.month_summary(month),
            history=manager.history_view(),
            categories=CATEGORIES,
            save_status=manager.save_status(),
        )

    @app.route('/api/data')
    def get_data():
        month = request.args.get('month') or manager.current_month
        summary = manager.month_summary(month)
        summary['save_status'] = manager.save_status()
        return jsonify(to_json(summary))

    @app.route('/add', methods=['POST'])
    def add_expense():
        data = request.get_json(silent=True) or {}
        expense = manager.add_expense(
            month=manager.current_month,
            title=data.get('title'),
            note=data.get('note', ''),
            amount=data.get('amount'),
            category=data.get('category'),
        )
        notify('expense', 'add')
        return jsonify({'success': True, 'expense': expense.to_dict()}), 201

    @app.route('/delete/<expense_id>', methods=['DELETE'])
    def delete_expense(expense_id):
        deleted = manager.delete_expense(manager.current_month, expense_id)
        if deleted:
            notify('expense', 'delete')
        return jsonify({'success': True, 'deleted': deleted})

    @app.route('/api/budget', methods=['POST'])
    def set_budget():
        data = request.get_json(silent=True) or {}
        budget = manager.set_budget(manager.current_month, data.get('budget'))
        notify('budget', 'set')
        return jsonify({'success': True, 'budget': float(budget)})

    @app.route('/api/history')
    def get_history():
        return jsonify(to_json(manager.history_view()))

    @app.route('/api/categories')
    def get_categories():
        return jsonify(list(CATEGORIES))

    @app.route('/export')
    def export_data():
        month = request.args.get('month') or manager.current_month
        response = Response(manager.export_csv(month), mimetype='text/csv')
        response.headers.set("Content-Disposition", "attachment", filename=f"expenses_{month}.csv")
        return response

    return app
