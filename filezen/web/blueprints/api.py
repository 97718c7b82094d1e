"""API blueprint for REST endpoints."""

import threading
import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from ...core.session import OrganizerSession
from ...core.rules import RuleStore
from ...core.models import Category
from ...core.duplicates import resolve_group
from ...core.planner import sort_records, category_stats
from ...core.exceptions import (
    ValidationError, TraversalError, ExecutionError, RuleStoreError, FileZenError
)

api_bp = Blueprint('api', __name__)

logger = logging.getLogger(__name__)

# Global state for the active session and its long-running operation
_state = {
    'session': None,
    'thread': None,
    'last_summary': None,
    'running': False,
    'lock': threading.Lock(),
}


def reset_state():
    """Forget the active session."""
    _state['session'] = None
    _state['thread'] = None
    _state['last_summary'] = None
    _state['running'] = False


def get_app_config():
    from ...core.config import get_config
    return current_app.config.get('FILEZEN_CONFIG') or get_config()


def get_session() -> OrganizerSession:
    session = _state['session']
    if session is None:
        raise ValidationError("No folder selected. POST /api/session first")
    return session


def is_busy() -> bool:
    return _state['running']


def claim_operation() -> bool:
    """Mark a scan or organization as running. False if one already is."""
    with _state['lock']:
        if _state['running']:
            return False
        _state['running'] = True
        return True


def release_operation():
    with _state['lock']:
        _state['running'] = False


def busy_response():
    return jsonify({'error': 'Busy', 'message': 'A scan or organization is already running'}), 409


def validate_request_data(data, required_fields):
    """
    Validate request data contains required fields.

    Args:
        data: Request data dictionary
        required_fields: List of required field names

    Raises:
        ValidationError: If validation fails
    """
    if not data:
        raise ValidationError("Request body is required")

    missing_fields = [field for field in required_fields if field not in data]
    if missing_fields:
        raise ValidationError(f"Missing required fields: {', '.join(missing_fields)}")


def run_in_background(target) -> threading.Thread:
    """Run target on a daemon thread; the operation claim is released when it ends."""
    def run():
        try:
            target()
        finally:
            release_operation()

    thread = threading.Thread(target=run)
    thread.daemon = True
    _state['thread'] = thread
    try:
        thread.start()
    except RuntimeError:
        release_operation()
        raise
    return thread


@api_bp.route('/session', methods=['POST'])
def open_session():
    """
    Acquire a root directory and start a new session.

    JSON body:
    - path: Directory to organize (read-write access is required)
    - exclude: Optional list of extra names to skip
    - default_excludes: Whether to keep the configured exclusions (default: true)
    """
    data = request.get_json(silent=True)
    validate_request_data(data, ['path'])

    app_config = get_app_config()
    exclude = data.get('exclude') or []
    if not isinstance(exclude, list):
        raise ValidationError("exclude must be a list of names")

    excluded = set(exclude)
    if data.get('default_excludes', True):
        excluded.update(app_config.scan.excluded_names)

    kwargs = {'config': app_config, 'excluded_names': excluded}
    if current_app.config.get('FILEZEN_ORACLE') is not None:
        kwargs['oracle'] = current_app.config['FILEZEN_ORACLE']

    with _state['lock']:
        if _state['running']:
            return busy_response()
        session = OrganizerSession.open(data['path'], **kwargs)
        reset_state()
        _state['session'] = session

    return jsonify({
        'root': str(session.root),
        'name': session.root.name,
        'excluded_names': sorted(session.exclusions),
        'rules': {ext: category.value for ext, category in session.rule_store.get().items()},
    }), 201


@api_bp.route('/scan', methods=['POST'])
def start_scan():
    """
    Scan the session root.

    JSON body (optional):
    - background: Run in a background thread (default: true)
    """
    session = get_session()
    data = request.get_json(silent=True) or {}

    if not claim_operation():
        return busy_response()

    if not data.get('background', True):
        try:
            result = session.scan()
        finally:
            release_operation()
        return jsonify({
            'total_files': result.total_files,
            'categorized_files': result.categorized_files,
            'duplicate_groups': len(result.duplicate_groups),
            'duration': result.duration,
        })

    def run_scan():
        try:
            session.scan()
        except TraversalError as e:
            # session.state already carries the user-visible error
            logger.error(f"Background scan failed: {e}")

    run_in_background(run_scan)
    return jsonify({'message': 'Scan started successfully'}), 202


@api_bp.route('/scan/status', methods=['GET'])
def get_scan_status():
    """Get current scan status and progress."""
    session = get_session()
    status = session.state.to_dict()
    status.update({
        'active': session.state.scanning,
        'total_files': len(session.records),
        'duplicate_groups': len(session.duplicate_groups),
    })
    return jsonify(status)


@api_bp.route('/files', methods=['GET'])
def get_files():
    """
    Get files from the last scan.

    Query parameters:
    - sort: name, size or last_modified (default: last_modified)
    - direction: asc or desc (default: desc)
    - category: Filter by category label
    """
    session = get_session()

    sort_field = request.args.get('sort', 'last_modified')
    direction = request.args.get('direction', 'desc')
    category_str = request.args.get('category', '').strip()

    records = sort_records(session.records, sort_field, direction)

    if category_str:
        category = Category.from_label(category_str)
        if category is None:
            raise ValidationError(f'Invalid category: {category_str}. Valid categories: {Category.labels()}')
        records = [record for record in records if record.category is category]

    selected = set(session.selection)
    files_data = []
    for record in records:
        entry = record.to_dict()
        entry['selected'] = record.name in selected
        files_data.append(entry)

    return jsonify({'files': files_data, 'count': len(files_data)})


@api_bp.route('/files/stats', methods=['GET'])
def get_file_stats():
    """Get file counts by category."""
    session = get_session()
    stats = {label: 0 for label in Category.labels()}
    stats.update(category_stats(session.records))
    stats['total'] = len(session.records)
    return jsonify(stats)


@api_bp.route('/duplicates', methods=['GET'])
def get_duplicates():
    """Get probable duplicate groups (files of identical size)."""
    session = get_session()
    groups = [group.to_dict() for group in session.duplicate_groups]
    return jsonify({'groups': groups, 'count': len(groups)})


@api_bp.route('/duplicates/<group_id>/resolve', methods=['POST'])
def resolve_duplicate(group_id):
    """Mark a duplicate group as resolved (or unresolved with {"resolved": false})."""
    session = get_session()
    data = request.get_json(silent=True) or {}
    resolved = data.get('resolved', True)
    if not isinstance(resolved, bool):
        raise ValidationError("resolved must be true or false")
    group = resolve_group(session.duplicate_groups, group_id, resolved)
    return jsonify(group.to_dict())


def get_rule_store() -> RuleStore:
    session = _state['session']
    if session is not None:
        return session.rule_store
    store = RuleStore(config=get_app_config())
    store.load()
    return store


@api_bp.route('/rules', methods=['GET'])
def get_rules():
    """Get custom extension rules."""
    rules = get_rule_store().get()
    return jsonify({ext: category.value for ext, category in sorted(rules.items())})


@api_bp.route('/rules/<extension>', methods=['PUT'])
def put_rule(extension):
    """
    Create or replace a rule.

    JSON body:
    - category: Category label
    """
    data = request.get_json(silent=True)
    validate_request_data(data, ['category'])

    session = _state['session']
    if session is not None:
        session.set_rule(extension, data['category'])
        rules = session.rule_store.get()
    else:
        rules = get_rule_store().set(extension, data['category'])

    return jsonify({ext: category.value for ext, category in sorted(rules.items())})


@api_bp.route('/rules/<extension>', methods=['DELETE'])
def delete_rule(extension):
    """Delete a rule."""
    session = _state['session']
    if session is not None:
        removed = session.delete_rule(extension)
    else:
        removed = get_rule_store().delete(extension)

    if not removed:
        return jsonify({'error': 'Not found', 'message': f'No rule for extension: {extension}'}), 404
    return jsonify({'message': 'Rule deleted successfully'})


@api_bp.route('/organize', methods=['POST'])
def start_organize():
    """
    Move selected files into category folders.

    JSON body (optional):
    - selection: File names to move (default: every categorized file)
    - categories: Name-to-category overrides
    - destination: Root receiving the category folders (default: session root)
    - background: Run in a background thread (default: true)
    """
    session = get_session()
    data = request.get_json(silent=True) or {}

    selection = data.get('selection')
    if selection is not None and not isinstance(selection, list):
        raise ValidationError("selection must be a list of file names")

    categories = None
    if data.get('categories'):
        if not isinstance(data['categories'], dict):
            raise ValidationError("categories must map file names to category labels")
        categories = {}
        for name, label in data['categories'].items():
            category = Category.from_label(label)
            if category is None:
                raise ValidationError(f"Invalid category for {name}: {label}")
            categories[name] = category

    kwargs = {
        'selection': selection,
        'categories': categories,
        'destination_root': data.get('destination'),
    }

    if not claim_operation():
        return busy_response()

    if not data.get('background', True):
        try:
            summary = session.organize(**kwargs)
        finally:
            release_operation()
        _state['last_summary'] = summary
        if not summary.success:
            raise ExecutionError.from_summary(summary)
        return jsonify(summary.to_dict())

    def run_organize():
        try:
            _state['last_summary'] = session.organize(**kwargs)
        except FileZenError as e:
            session.state.error = str(e)
            logger.error(f"Background organization failed: {e}")

    run_in_background(run_organize)
    return jsonify({'message': 'Organization started successfully'}), 202


@api_bp.route('/organize/status', methods=['GET'])
def get_organize_status():
    """Get current organization status and the last batch summary."""
    session = get_session()
    status = session.state.to_dict()
    summary = _state['last_summary']
    status.update({
        'active': session.state.organizing,
        'summary': summary.to_dict() if summary else None,
    })
    return jsonify(status)


@api_bp.route('/logs', methods=['GET'])
def get_logs():
    """Get audit log entries, newest first."""
    session = get_session()
    return jsonify({'entries': [entry.to_dict() for entry in session.audit_log.entries()]})


@api_bp.route('/logs', methods=['DELETE'])
def clear_logs():
    """Clear the audit log shown to the user. audit.log on disk is kept."""
    session = get_session()
    session.audit_log.clear()
    return jsonify({'message': 'Audit log cleared'})


@api_bp.route('/health', methods=['GET'])
def health_check():
    """Check system health and rule store status."""
    try:
        store = RuleStore(config=get_app_config())
        store_healthy = store.health_check()
    except RuleStoreError as e:
        current_app.logger.error(f"Health check failed: {e}")
        return jsonify({
            'status': 'unhealthy',
            'rule_store_ready': False,
            'error': str(e),
            'timestamp': datetime.now().isoformat()
        }), 503

    return jsonify({
        'status': 'healthy' if store_healthy else 'degraded',
        'rule_store_ready': store_healthy,
        'session_active': _state['session'] is not None,
        'busy': is_busy(),
        'timestamp': datetime.now().isoformat()
    })
