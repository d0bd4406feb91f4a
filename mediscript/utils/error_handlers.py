# /mediscript/utils/error_handlers.py
from flask import jsonify, current_app
from mediscript.extensions import db

def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def too_large(error):
        return jsonify({'error': 'Request too large'}), 413

    @app.errorhandler(429)
    def rate_limited(error):
        return jsonify({'error': 'Too many requests, please try again later'}), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        current_app.audit_logger.error(f"Internal server error: {str(error)}")
        return jsonify({'error': 'Internal server error'}), 500
