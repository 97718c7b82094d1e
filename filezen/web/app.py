"""Flask application exposing the FileZen JSON API."""

import logging
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException
from .blueprints.api import api_bp
from ..core.exceptions import (
    FileZenError, AccessDeniedError, TraversalError, RuleStoreError,
    ValidationError, ExecutionError
)


def create_app(config=None):
    """
    Create and configure the Flask application.

    Args:
        config: Configuration dictionary. ``FILEZEN_CONFIG`` may carry an
            AppConfig and ``FILEZEN_ORACLE`` a categorization oracle.

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    app.config.update({
        'SECRET_KEY': 'dev-key-change-in-production',
        'JSON_SORT_KEYS': False,
    })

    if config:
        app.config.update(config)

    app.register_blueprint(api_bp, url_prefix='/api')

    if not app.debug:
        app.logger.setLevel(logging.INFO)
        app.logger.info('FileZen API startup')

    def error_response(label, error, status_code):
        return jsonify({'error': label, 'message': str(error)}), status_code

    @app.errorhandler(AccessDeniedError)
    def access_denied(error):
        app.logger.warning(f'Access denied: {error}')
        return error_response('Access denied', error, 403)

    @app.errorhandler(ValidationError)
    def validation_error(error):
        return error_response('Validation error', error, 400)

    @app.errorhandler(TraversalError)
    def traversal_error(error):
        app.logger.error(f'Traversal Error: {error}')
        return error_response('File system traversal failed', error, 500)

    @app.errorhandler(RuleStoreError)
    def rule_store_error(error):
        app.logger.error(f'Rule Store Error: {error}', exc_info=True)
        return error_response('Rule store error', error, 503)

    @app.errorhandler(ExecutionError)
    def execution_error(error):
        app.logger.error(f'Execution Error: {error}')
        return jsonify({
            'error': 'Organization failed',
            'message': str(error),
            'attempted': error.attempted,
            'succeeded': error.succeeded,
            'failed': error.failed,
        }), 500

    @app.errorhandler(FileZenError)
    def filezen_error(error):
        app.logger.error(f'Application Error: {error}', exc_info=True)
        return error_response('Application error', error, 400)

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'error': error.name, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def unexpected_error(error):
        app.logger.error(f'Unexpected Error: {error}', exc_info=True)
        return jsonify({
            'error': 'Unexpected error',
            'message': 'An unexpected error occurred'
        }), 500

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True, host='127.0.0.1', port=5000)
